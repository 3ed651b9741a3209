"""
Error taxonomy for dumbo.

Every error raised by the engine derives from DumboError so test harnesses can
catch the whole family at once. Builtin bases (KeyError, ValueError, TypeError)
are mixed in where the failure has an obvious builtin counterpart.
"""

from __future__ import annotations


class DumboError(Exception):
    """Base class for all dumbo errors."""


class UnknownTable(DumboError, KeyError):
    """No factory is registered for the requested table."""

    def __init__(self, table: str) -> None:
        super().__init__(f"unknown table {table!r}")
        self.table = table

    def __str__(self) -> str:
        return self.args[0]


class DuplicateFactory(DumboError, ValueError):
    """A factory or schema was registered twice for the same table."""

    def __init__(self, table: str, kind: str = "factory") -> None:
        super().__init__(f"{kind} for table {table!r} is already registered")
        self.table = table
        self.kind = kind


class UnknownColumn(DumboError, ValueError):
    """A partial override names a column the factory never produces."""

    def __init__(self, table: str, columns: list[str]) -> None:
        super().__init__(
            f"factory for table {table!r} does not produce column(s): {', '.join(columns)}"
        )
        self.table = table
        self.columns = columns


class GenerationExhausted(DumboError):
    """No unique candidate was found within the retry budget."""

    def __init__(self, table: str, retry_limit: int) -> None:
        super().__init__(
            f"could not generate a unique record for table {table!r} "
            f"after {retry_limit + 1} attempt(s) (retry_limit={retry_limit})"
        )
        self.table = table
        self.retry_limit = retry_limit


class ColumnMismatch(DumboError, ValueError):
    """Records in one insert batch do not share the same columns."""

    def __init__(self, table: str, index: int) -> None:
        super().__init__(
            f"record {index} for table {table!r} has a different column set than record 0"
        )
        self.table = table
        self.index = index


class ScopeError(DumboError):
    """Invalid scope stack operation (e.g. popping the root scope)."""


class StoreError(DumboError):
    """The underlying store failed; the original exception is the __cause__."""


class ReconciliationError(DumboError, TypeError):
    """A returned value does not fit the destination attribute."""

    def __init__(self, column: str, attribute: str, message: str) -> None:
        super().__init__(f"column {column!r} -> attribute {attribute!r}: {message}")
        self.column = column
        self.attribute = attribute


__all__ = [
    "DumboError",
    "UnknownTable",
    "DuplicateFactory",
    "UnknownColumn",
    "GenerationExhausted",
    "ColumnMismatch",
    "ScopeError",
    "StoreError",
    "ReconciliationError",
]
