"""
Transaction helpers for test harnesses.

Each test runs inside a transaction that is always rolled back; nested tests
run inside savepoints rolled back when they finish. Both helpers yield a
PsycopgStore bound to the connection, ready to hand to a Seeder.

Example
-------
    with begin(connection) as store:
        seeder.seed_one(store, "user", {"username": "gopher"})
        with seeder.savepoint(connection, "duplicate username") as nested:
            ...
"""

from __future__ import annotations

import contextlib
from typing import Generator

import psycopg

from dumbo.infrastructure.store import PsycopgStore
from dumbo.utils.logging import get_logger

log = get_logger(__name__)


@contextlib.contextmanager
def begin(connection: psycopg.Connection) -> Generator[PsycopgStore, None, None]:
    """Run the block in a transaction that is rolled back on exit."""
    with connection.transaction(force_rollback=True):
        yield PsycopgStore(connection)
    log.debug("transaction rolled back")


@contextlib.contextmanager
def savepoint(
    connection: psycopg.Connection, name: str
) -> Generator[PsycopgStore, None, None]:
    """Run the block in a savepoint rolled back on exit, even on success."""
    with connection.transaction(savepoint_name=name, force_rollback=True):
        yield PsycopgStore(connection)
    log.debug("rolled back to savepoint", extra={"savepoint": name})


__all__ = ["begin", "savepoint"]
