"""
Reconciliation between records and caller-supplied targets.

Targets are dataclasses, Pydantic models, plain objects or mutable mappings.
Values move through an explicit column -> attribute table (from a registered
Schema, or derived once from the target's declared fields), so unknown
columns are simply skipped.

Nullable columns map onto the `Nullable` wrapper: a present value becomes
`Nullable(value, valid=True)`, a NULL becomes `Nullable(zero, valid=False)`.
On the way in, an invalid `Nullable` becomes DEFAULT so the store applies the
column default.

Returned values must already match the declared type, with a few widenings:
int and Decimal to float, UUID to str. Anything else raises
ReconciliationError.
"""

from __future__ import annotations

import dataclasses
import types
import typing
import uuid
from collections.abc import Mapping, MutableMapping
from decimal import Decimal
from typing import Any, Dict, Generic, Optional, TypeVar, Union

from dumbo.domain.models import DEFAULT, Record, Schema
from dumbo.errors import ReconciliationError

T = TypeVar("T")


@dataclasses.dataclass
class Nullable(Generic[T]):
    """A value that may be NULL: `valid` is False when the column was NULL."""

    value: Optional[T] = None
    valid: bool = False

    @classmethod
    def of(cls, value: T) -> "Nullable[T]":
        return cls(value, True)

    @classmethod
    def null(cls, zero: Optional[T] = None) -> "Nullable[T]":
        return cls(zero, False)


def _type_hints(cls: type) -> Dict[str, Any]:
    model_fields = getattr(cls, "model_fields", None)
    if isinstance(model_fields, Mapping):
        return {name: info.annotation for name, info in model_fields.items()}
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError):
        # Unresolvable string annotations carry no usable type information.
        annotations = getattr(cls, "__annotations__", {})
        return {name: hint for name, hint in annotations.items() if not isinstance(hint, str)}


def column_map(target: Any, schema: Optional[Schema] = None) -> Dict[str, str]:
    """Build the column -> attribute table for `target`."""
    if schema is not None:
        return dict(schema.columns)
    if isinstance(target, Mapping):
        return {key: key for key in target}
    cls = type(target)
    if dataclasses.is_dataclass(cls):
        return {field.name: field.name for field in dataclasses.fields(cls)}
    model_fields = getattr(cls, "model_fields", None)
    if isinstance(model_fields, Mapping):
        return {name: name for name in model_fields}
    hints = _type_hints(cls)
    if hints:
        return {
            name: name
            for name, hint in hints.items()
            if not name.startswith("_") and typing.get_origin(hint) is not typing.ClassVar
        }
    return {name: name for name in vars(target) if not name.startswith("_")}


def record_from_target(target: Any, columns: Dict[str, str]) -> Record:
    """Read a record out of `target`, turning invalid Nullables into DEFAULT."""
    record: Record = {}
    for column, attribute in columns.items():
        if isinstance(target, Mapping):
            value = target.get(attribute)
        else:
            value = getattr(target, attribute, None)
        if isinstance(value, Nullable):
            value = value.value if value.valid else DEFAULT
        record[column] = value
    return record


def reconcile(target: Any, record: Record, columns: Optional[Dict[str, str]] = None) -> Any:
    """
    Copy the values of `record` onto `target`.

    Mapping targets without an explicit column table receive every column.
    Otherwise only columns present in the table are copied; the rest are
    skipped.

    Raises
    ------
    ReconciliationError
        If a value does not fit the destination attribute's declared type.
    """
    if columns is None and isinstance(target, MutableMapping):
        for column, value in record.items():
            target[column] = _convert(value, None, target.get(column), column, column)
        return target

    if columns is None:
        columns = column_map(target)
    hints = {} if isinstance(target, Mapping) else _type_hints(type(target))

    for column, value in record.items():
        attribute = columns.get(column)
        if attribute is None:
            continue
        if isinstance(target, MutableMapping):
            target[attribute] = _convert(
                value, None, target.get(attribute), column, attribute
            )
            continue
        current = getattr(target, attribute, None)
        converted = _convert(value, hints.get(attribute), current, column, attribute)
        try:
            setattr(target, attribute, converted)
        except (AttributeError, TypeError, ValueError) as exc:
            raise ReconciliationError(column, attribute, str(exc)) from exc
    return target


def _is_nullable(hint: Any, current: Any) -> bool:
    if isinstance(current, Nullable):
        return True
    return hint is Nullable or typing.get_origin(hint) is Nullable


def _zero(inner: Any) -> Any:
    if not isinstance(inner, type):
        return None
    try:
        return inner()
    except TypeError:
        return None


def _unwrap_optional(hint: Any) -> tuple[Any, bool]:
    """Return (inner type, is_optional) for `Optional[X]` / `X | None`."""
    origin = typing.get_origin(hint)
    if origin is Union or origin is getattr(types, "UnionType", None):
        args = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        optional = len(args) != len(typing.get_args(hint))
        if len(args) == 1:
            return args[0], optional
        return Any, optional
    return hint, False


def _coerce(value: Any, expected: Any, column: str, attribute: str) -> Any:
    expected = typing.get_origin(expected) or expected
    if expected is None or expected is Any or not isinstance(expected, type):
        return value
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if expected is float and isinstance(value, Decimal):
        return float(value)
    if expected is str and isinstance(value, uuid.UUID):
        return str(value)
    if expected is int and isinstance(value, bool):
        raise ReconciliationError(column, attribute, "cannot assign bool to int")
    if isinstance(value, expected):
        return value
    raise ReconciliationError(
        column,
        attribute,
        f"cannot assign {type(value).__name__} to {expected.__name__}",
    )


def _convert(value: Any, hint: Any, current: Any, column: str, attribute: str) -> Any:
    if _is_nullable(hint, current):
        args = typing.get_args(hint)
        inner = args[0] if args else None
        if inner is None and isinstance(current, Nullable) and current.value is not None:
            inner = type(current.value)
        if value is None:
            return Nullable(_zero(inner), False)
        return Nullable(_coerce(value, inner, column, attribute), True)

    expected, optional = _unwrap_optional(hint)
    if value is None:
        if hint is None or hint is Any or optional:
            return None
        raise ReconciliationError(column, attribute, "cannot assign NULL to a non-nullable field")
    return _coerce(value, expected, column, attribute)


__all__ = ["Nullable", "column_map", "record_from_target", "reconcile"]
