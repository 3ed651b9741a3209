"""
Dynamic TRUNCATE / INSERT ... RETURNING execution against a Store.

Statements are built from quoted identifiers and positional placeholders only;
values always travel as bound parameters, except the DEFAULT sentinel which is
rendered as the SQL keyword `default`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from dumbo.domain.models import DEFAULT, Record
from dumbo.errors import ColumnMismatch
from dumbo.identifiers import quote_identifier
from dumbo.infrastructure.store import Rows, Store
from dumbo.utils.logging import get_logger

log = get_logger(__name__)

_PLACEHOLDERS: Dict[str, Callable[[int], str]] = {
    "dollar": lambda position: f"${position}",
    "format": lambda position: "%s",
}


def _rows_to_records(rows: Rows) -> List[Record]:
    try:
        columns = rows.columns
        return [dict(zip(columns, row)) for row in rows]
    finally:
        rows.close()


class Executor:
    """
    Issue fixture statements against a single store handle.

    Parameters
    ----------
    store : Store
        The connection or transaction the statements run on.
    """

    def __init__(self, store: Store) -> None:
        self.store = store
        paramstyle = getattr(store, "paramstyle", "dollar")
        if paramstyle not in _PLACEHOLDERS:
            raise ValueError(f"unsupported paramstyle {paramstyle!r}")
        self._paramstyle = paramstyle
        self._placeholder = _PLACEHOLDERS[paramstyle]

    def truncate(self, *tables: str) -> None:
        """Delete every row of `tables`, restarting identities and cascading."""
        if not tables:
            raise ValueError("truncate requires at least one table")
        names = ", ".join(quote_identifier(table) for table in tables)
        statement = f"TRUNCATE TABLE {names} RESTART IDENTITY CASCADE"
        log.debug("truncating", extra={"tables": list(tables)})
        self.store.execute(statement)

    def insert_many(self, table: str, records: Sequence[Record]) -> List[Record]:
        """
        Insert `records` with one multi-row statement and return the rows the
        store hands back, in insertion order.

        Column order is taken from the first record; every other record must
        have exactly the same columns.
        """
        if not records:
            return []

        columns = list(records[0])
        expected = set(columns)
        for index, record in enumerate(records):
            if set(record) != expected:
                raise ColumnMismatch(table, index)

        if not columns:
            # VALUES cannot be empty; every row takes its column defaults.
            statement = f"INSERT INTO {quote_identifier(table)} DEFAULT VALUES RETURNING *"
            inserted: List[Record] = []
            for _ in records:
                inserted.extend(_rows_to_records(self.store.query(statement)))
            return inserted

        statement, params = self._build_insert(table, columns, records)
        log.debug(
            "inserting",
            extra={"table": table, "rows": len(records), "columns": columns},
        )
        return _rows_to_records(self.store.query(statement, params))

    def seed(self, table: str, records: Sequence[Record]) -> List[Record]:
        """Truncate `table`, then insert `records`."""
        self.truncate(table)
        return self.insert_many(table, records)

    def fetch_rows(self, statement: str, params: Optional[Sequence[Any]] = None) -> List[Record]:
        """Run a query and return its rows as records."""
        return _rows_to_records(self.store.query(statement, params))

    def run_script(self, path: Path | str) -> None:
        """Execute the SQL statements in the file at `path`."""
        script = Path(path).read_text(encoding="utf-8")
        log.debug("running script", extra={"path": str(path)})
        self.store.execute(script)

    def _quote(self, name: str) -> str:
        quoted = quote_identifier(name)
        if self._paramstyle == "format":
            quoted = quoted.replace("%", "%%")
        return quoted

    def _build_insert(
        self, table: str, columns: List[str], records: Sequence[Record]
    ) -> tuple[str, List[Any]]:
        params: List[Any] = []
        tuples: List[str] = []
        for record in records:
            slots = []
            for column in columns:
                value = record[column]
                if value is DEFAULT:
                    slots.append("default")
                    continue
                params.append(value)
                slots.append(self._placeholder(len(params)))
            tuples.append(f"({', '.join(slots)})")

        statement = (
            f"INSERT INTO {self._quote(table)} "
            f"({', '.join(self._quote(column) for column in columns)}) "
            f"VALUES {', '.join(tuples)} "
            f"RETURNING *"
        )
        return statement, params


__all__ = ["Executor"]
