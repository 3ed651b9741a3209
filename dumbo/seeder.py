"""
Seeder: the fixture engine's entry point.

A Seeder owns a factory registry and a scope stack; nothing is process-wide,
so independent test runs can use independent instances. Every operation takes
the store it should run on explicitly, normally the transaction (or savepoint)
of the test at hand.

Usage:
    from faker import Faker
    from dumbo import Factory, Seeder

    fake = Faker()
    seeder = Seeder(
        Factory(
            table="user",
            new_record=lambda: {"username": fake.user_name()},
            indexers=(lambda record: record["username"],),
        )
    )

    with seeder.savepoint(connection, "registers a user") as store:
        gopher = seeder.seed_one(store, "user", {"username": "gopher"})
"""

from __future__ import annotations

import contextlib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Generator, Iterable, List, Optional, Sequence

import psycopg

from dumbo import testing
from dumbo.config import Settings, get_settings
from dumbo.domain.models import DEFAULT, Factory, GenerationOutcome, Record, Schema
from dumbo.executor import Executor
from dumbo.generator import RecordGenerator
from dumbo.infrastructure.store import PsycopgStore, Store
from dumbo.reconcile import column_map, reconcile, record_from_target
from dumbo.registry import FactoryRegistry
from dumbo.scopes import ScopeStack
from dumbo.utils.logging import get_logger

log = get_logger(__name__)


class Seeder:
    """
    Generate, insert and clean up fixture rows.

    Parameters
    ----------
    *factories : Factory
        Factories to register; one per table.
    schemas : iterable of Schema
        Column -> attribute mappings used for typed targets.
    retry_limit : int, optional
        Retries per record on uniqueness collisions. Defaults to
        settings.retry_limit.
    strict_overrides : bool, optional
        Reject partial overrides naming columns a factory never produces
        instead of dropping them. Defaults to settings.strict_overrides.
    settings : Settings, optional
        Settings to read defaults from (cached settings when omitted).
    """

    def __init__(
        self,
        *factories: Factory,
        schemas: Iterable[Schema] = (),
        retry_limit: Optional[int] = None,
        strict_overrides: Optional[bool] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.retry_limit = settings.retry_limit if retry_limit is None else retry_limit
        if self.retry_limit < 0:
            raise ValueError(f"retry_limit must be >= 0, got {self.retry_limit}")
        self.registry = FactoryRegistry(factories, schemas)
        self.scopes = ScopeStack()
        self.generator = RecordGenerator(
            self.registry,
            self.scopes,
            strict_overrides=(
                settings.strict_overrides if strict_overrides is None else strict_overrides
            ),
        )

    # Scopes

    def scope(self) -> contextlib.AbstractContextManager[ScopeStack]:
        """Open a nested uniqueness scope for the duration of a `with` block."""
        return self.scopes.scope()

    @contextlib.contextmanager
    def savepoint(
        self, connection: psycopg.Connection, name: str
    ) -> Generator[PsycopgStore, None, None]:
        """
        Open a savepoint and a uniqueness scope together.

        On exit the scope is popped and the savepoint rolled back, keeping the
        in-memory reservations in step with the rows in the database.
        """
        with testing.savepoint(connection, name):
            with self.scopes.scope():
                yield PsycopgStore(connection)

    # Generation

    def generate(
        self, table: str, partials: Iterable[Optional[Mapping]]
    ) -> List[GenerationOutcome]:
        """Generate records without touching the store."""
        return self.generator.generate(table, partials, self.retry_limit)

    def release(self, outcomes: Iterable[GenerationOutcome]) -> None:
        """Release the uniqueness keys reserved for `outcomes`."""
        self.generator.release(outcomes)

    # Generic records

    def seed_one(self, store: Store, table: str, partial: Optional[Mapping] = None) -> Record:
        """Truncate `table`, then insert one generated record."""
        return self.seed_many(store, table, [partial or {}])[0]

    def seed_many(
        self, store: Store, table: str, partials: Iterable[Optional[Mapping]]
    ) -> List[Record]:
        """Truncate `table`, then insert one generated record per partial."""
        return self._persist(store, table, list(partials), truncate=True)

    def insert_one(self, store: Store, table: str, partial: Optional[Mapping] = None) -> Record:
        """Add one generated record to `table`."""
        return self.insert_many(store, table, [partial or {}])[0]

    def insert_many(
        self, store: Store, table: str, partials: Iterable[Optional[Mapping]]
    ) -> List[Record]:
        """Add one generated record per partial to `table`."""
        return self._persist(store, table, list(partials), truncate=False)

    # Typed targets

    def seed(self, store: Store, table: str, target: Any) -> Any:
        """
        Truncate `table`, insert the target object(s) and copy the returned
        values back onto them. Accepts one target or a list of targets.
        """
        return self._persist_targets(store, table, target, truncate=True)

    def insert(self, store: Store, table: str, target: Any) -> Any:
        """Insert the target object(s) and copy the returned values back onto them."""
        return self._persist_targets(store, table, target, truncate=False)

    # Plain statements

    def truncate(self, store: Store, *tables: str) -> None:
        Executor(store).truncate(*tables)

    def run_script(self, store: Store, path: Path | str) -> None:
        Executor(store).run_script(path)

    def fetch_rows(
        self, store: Store, statement: str, params: Optional[Sequence[Any]] = None
    ) -> List[Record]:
        return Executor(store).fetch_rows(statement, params)

    def _build(
        self, table: str, partials: List[Optional[Mapping]]
    ) -> tuple[List[Record], List[GenerationOutcome]]:
        if self.registry.lookup(table) is None:
            log.debug(
                "no factory registered, inserting records as given",
                extra={"table": table, "rows": len(partials)},
            )
            return [dict(partial or {}) for partial in partials], []
        outcomes = self.generate(table, partials)
        return [outcome.record for outcome in outcomes], outcomes

    def _persist(
        self, store: Store, table: str, partials: List[Optional[Mapping]], truncate: bool
    ) -> List[Record]:
        records, outcomes = self._build(table, partials)
        executor = Executor(store)
        try:
            if truncate:
                return executor.seed(table, records)
            return executor.insert_many(table, records)
        except Exception:
            # No reservations may outlive a batch whose rows never landed.
            self.release(outcomes)
            raise

    def _persist_targets(self, store: Store, table: str, target: Any, truncate: bool) -> Any:
        targets = list(target) if isinstance(target, (list, tuple)) else [target]
        if not targets:
            if truncate:
                Executor(store).truncate(table)
            return target

        schema = self.registry.schema_for(table)
        columns = column_map(targets[0], schema)
        raw = [record_from_target(item, columns) for item in targets]
        if self.registry.lookup(table) is not None:
            partials = [
                {column: value for column, value in record.items() if value is not DEFAULT}
                for record in raw
            ]
        else:
            partials = raw

        returned = self._persist(store, table, partials, truncate=truncate)

        # Plain mappings without a schema take every returned column.
        mapping = None if schema is None and isinstance(targets[0], Mapping) else columns
        for item, record in zip(targets, returned):
            reconcile(item, record, mapping)
        return target


__all__ = ["Seeder"]
