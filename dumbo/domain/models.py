"""
Domain models for dumbo.

Records are plain dictionaries (column name -> value). Factories and schemas
are immutable registrations validated with Pydantic; generation outcomes carry
the uniqueness keys committed on behalf of each generated record so that a
caller can undo exactly those keys later.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Tuple

from pydantic import BaseModel, Field

Record = Dict[str, Any]
Indexer = Callable[[Record], str]


class _Default:
    """Sentinel rendered as the SQL keyword `default` instead of a parameter."""

    _instance: "_Default | None" = None

    def __new__(cls) -> "_Default":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DEFAULT"

    def __reduce__(self) -> str:
        return "DEFAULT"


DEFAULT = _Default()


class Factory(BaseModel):
    """
    Registration pairing a table with a default-record generator and its
    uniqueness rules.
    """

    table: str = Field(..., min_length=1, description="Target table (may be schema-qualified).")
    new_record: Callable[[], Record] = Field(
        default=dict, description="Zero-argument generator producing a default record."
    )
    indexers: Tuple[Indexer, ...] = Field(
        default=(), description="Ordered functions deriving uniqueness keys from a record."
    )

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }


class Schema(BaseModel):
    """
    Column -> attribute mapping used to move values between typed targets and
    records.
    """

    table: str = Field(..., min_length=1)
    columns: Dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}


class CommittedKey(BaseModel):
    table: str
    position: int
    key: str

    model_config = {"frozen": True}


class GenerationOutcome(BaseModel):
    """A generated record plus the uniqueness keys committed for it."""

    record: Record
    keys: Tuple[CommittedKey, ...] = ()

    model_config = {"arbitrary_types_allowed": True}


__all__ = [
    "DEFAULT",
    "Record",
    "Indexer",
    "Factory",
    "Schema",
    "CommittedKey",
    "GenerationOutcome",
]
