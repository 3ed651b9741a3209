"""
Pytest configuration for dumbo.

Provides fixtures for:
- An in-memory fake store for unit tests (no database required)
- Database connection management for integration tests
- Schema setup for the `user` table the integration tests seed
"""

from __future__ import annotations

import re
from typing import Any, Dict, Generator, Iterator, List, Optional, Sequence, Tuple

import psycopg
import pytest

from dumbo.config import Settings
from dumbo.errors import StoreError
from dumbo.infrastructure.db_factory import build_dsn, get_sync_pool

_INSERT = re.compile(
    r"^INSERT INTO (?P<table>\S+) \((?P<columns>.*?)\) VALUES (?P<values>.*) RETURNING \*$",
    re.S,
)
_DEFAULT_VALUES = re.compile(r"^INSERT INTO (?P<table>\S+) DEFAULT VALUES RETURNING \*$")
_TRUNCATE = re.compile(r"^TRUNCATE TABLE (?P<tables>.*) RESTART IDENTITY CASCADE$")
_SELECT_FROM = re.compile(r"\bFROM\s+(?P<table>\S+)", re.I)
_MISSING = object()


def _unquote(name: str) -> str:
    return name.replace('"', "")


class FakeRows:
    def __init__(self, columns: List[str], rows: List[Tuple[Any, ...]]) -> None:
        self._columns = columns
        self._rows = rows
        self.closed = False

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        return iter(self._rows)

    def close(self) -> None:
        self.closed = True


class FakeStore:
    """
    In-memory store understanding the statements the executor builds.

    Every table gets an `id` identity column; `unique` maps a table to
    columns that must be unique, mimicking a unique constraint.
    """

    paramstyle = "dollar"

    def __init__(self, unique: Optional[Dict[str, List[str]]] = None) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.identities: Dict[str, int] = {}
        self.statements: List[Tuple[str, Optional[Sequence[Any]]]] = []
        self.scripts: List[str] = []
        self.unique = unique or {}
        self.fail_with: Optional[str] = None

    def execute(self, statement: str, params: Optional[Sequence[Any]] = None) -> int:
        self.statements.append((statement, params))
        self._maybe_fail()
        match = _TRUNCATE.match(statement)
        if match:
            for name in match.group("tables").split(", "):
                table = _unquote(name)
                self.tables[table] = []
                self.identities[table] = 0
            return 0
        self.scripts.append(statement)
        return 0

    def query(self, statement: str, params: Optional[Sequence[Any]] = None) -> FakeRows:
        self.statements.append((statement, params))
        self._maybe_fail()
        match = _INSERT.match(statement)
        if match:
            columns = [_unquote(column) for column in match.group("columns").split(", ")]
            tuples = [group.split(", ") for group in re.findall(r"\(([^()]*)\)", match.group("values"))]
            return self._insert(_unquote(match.group("table")), columns, tuples, list(params or []))
        match = _DEFAULT_VALUES.match(statement)
        if match:
            return self._insert(_unquote(match.group("table")), [], [[]], [])
        match = _SELECT_FROM.search(statement)
        if match:
            rows = self.tables.get(_unquote(match.group("table")), [])
            columns = list(rows[0]) if rows else ["id"]
            return FakeRows(columns, [tuple(row.get(c) for c in columns) for row in rows])
        return FakeRows([], [])

    @property
    def insert_statements(self) -> List[Tuple[str, Optional[Sequence[Any]]]]:
        return [(s, p) for s, p in self.statements if s.startswith("INSERT")]

    def _maybe_fail(self) -> None:
        if self.fail_with:
            raise StoreError(self.fail_with)

    def _insert(
        self, table: str, columns: List[str], tuples: List[List[str]], params: List[Any]
    ) -> FakeRows:
        existing = self.tables.setdefault(table, [])
        identity = self.identities.get(table, 0)
        pending: List[Dict[str, Any]] = []
        for slots in tuples:
            row: Dict[str, Any] = {}
            for column, slot in zip(columns, slots):
                row[column] = params[int(slot[1:]) - 1] if slot.startswith("$") else _MISSING
            if row.get("id", _MISSING) is _MISSING:
                identity += 1
                row["id"] = identity
            row = {column: (None if value is _MISSING else value) for column, value in row.items()}
            for column in self.unique.get(table, []):
                if any(other.get(column) == row.get(column) for other in existing + pending):
                    raise StoreError(
                        f'duplicate key value violates unique constraint "{table}_{column}_key"'
                    )
            pending.append(row)

        existing.extend(pending)
        self.identities[table] = identity
        returned = ["id"] + [column for column in columns if column != "id"]
        return FakeRows(returned, [tuple(row[c] for c in returned) for row in pending])


@pytest.fixture
def fake_store() -> FakeStore:
    """Fresh in-memory store per test."""
    return FakeStore()


@pytest.fixture
def unique_store() -> FakeStore:
    """In-memory store enforcing a unique `username` on `user`."""
    return FakeStore(unique={"user": ["username"]})


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the process environment and any .env file."""
    return Settings(_env_file=None, retry_limit=5, log_level="DEBUG")


@pytest.fixture(scope="session")
def test_dsn() -> str:
    """
    Database connection string for integration tests.

    Can be overridden via DATABASE_URL or the DB_* variables in CI or locally.
    """
    return build_dsn(Settings())


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped pooled connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    with get_sync_pool(min_size=1, max_size=2).connection() as conn:
        yield conn


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Ensure the `user` table exists.
    """
    with db_connection.cursor() as cur:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS "user" (
                "id"       bigint GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
                "username" text NOT NULL UNIQUE,
                "nickname" text NOT NULL DEFAULT '',
                "age"      integer,
                "is_silly" boolean
            );
            """
        )
    db_connection.commit()
    return True
