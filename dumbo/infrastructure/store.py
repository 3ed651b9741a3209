"""
Store protocol consumed by the executor, plus a psycopg adapter.

The engine only needs two operations from a relational store: `execute` for
statements without a result set and `query` for statements that return rows.
Anything exposing those (a psycopg connection wrapped in PsycopgStore, an
in-memory fake in unit tests) can back a Seeder.
"""

from __future__ import annotations

from typing import Any, Iterator, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import psycopg

from dumbo.errors import StoreError


@runtime_checkable
class Rows(Protocol):
    """Result of `Store.query`: column names plus an iterable of row tuples."""

    @property
    def columns(self) -> List[str]:
        ...

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Store(Protocol):
    """
    Minimal relational store contract.

    Implementations may set a `paramstyle` attribute: "dollar" for `$1, $2`
    placeholders (the default) or "format" for `%s` placeholders.
    """

    def execute(self, statement: str, params: Optional[Sequence[Any]] = None) -> int:
        ...

    def query(self, statement: str, params: Optional[Sequence[Any]] = None) -> Rows:
        ...


class CursorRows:
    """Rows backed by an open psycopg cursor."""

    def __init__(self, cursor: psycopg.Cursor) -> None:
        self._cursor = cursor
        description = cursor.description or []
        self._columns = [column.name for column in description]

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        try:
            for row in self._cursor:
                yield tuple(row)
        except psycopg.Error as exc:
            raise StoreError(f"iterating rows: {exc}") from exc

    def close(self) -> None:
        self._cursor.close()

    def __enter__(self) -> "CursorRows":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        self.close()


class PsycopgStore:
    """
    Store backed by a psycopg connection (or an open transaction on one).

    psycopg errors are re-raised as StoreError with the original exception
    chained, so callers can handle every store failure through one type.
    """

    paramstyle = "format"

    def __init__(self, connection: psycopg.Connection) -> None:
        self.connection = connection

    def execute(self, statement: str, params: Optional[Sequence[Any]] = None) -> int:
        try:
            with self.connection.cursor() as cur:
                cur.execute(statement, params)
                return cur.rowcount
        except psycopg.Error as exc:
            raise StoreError(f"executing statement: {exc}") from exc

    def query(self, statement: str, params: Optional[Sequence[Any]] = None) -> CursorRows:
        cur = self.connection.cursor()
        try:
            cur.execute(statement, params)
        except psycopg.Error as exc:
            cur.close()
            raise StoreError(f"running query: {exc}") from exc
        return CursorRows(cur)


__all__ = ["Rows", "Store", "CursorRows", "PsycopgStore"]
