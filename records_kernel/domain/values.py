"""
Tagged field values (``records_kernel.domain.values``).

Responsibility
--------------
Defines the closed set of value kinds a record field may hold and the
boundary functions that turn untyped caller input into typed values
(``coerce_field_value``) and typed values into their storage form and back
(``encode_field_map`` / ``decode_field_map``).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Inside the kernel a field value is always one of ``str``, ``Decimal``,
  ``date`` or ``bool``.  Floats never survive the boundary; they are
  converted through their shortest ``repr`` so ``0.1`` becomes
  ``Decimal("0.1")``.
* ``bool`` is never accepted where a number is required even though it is
  an ``int`` subclass in Python.
* Stored field maps are tagged: ``{"amount": {"kind": "number", "value": "10"}}``
  so that values decode to the same kind without consulting the registry.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union

from records_kernel.exceptions import DropdownOptionError, FieldTypeError


FieldValue = Union[str, Decimal, date, bool]


class RecordType(str, Enum):
    """Kinds of finance record."""

    EXPENSE = "expense"
    REVENUE = "revenue"


class FieldType(str, Enum):
    """Field definition types available to organizations."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    DROPDOWN = "dropdown"
    FORMULA = "formula"
    BOOLEAN = "boolean"


class ValueKind(str, Enum):
    """Storage tag of a typed field value."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


# Field type -> the kind of value it holds
VALUE_KIND_BY_TYPE: dict[FieldType, ValueKind] = {
    FieldType.STRING: ValueKind.STRING,
    FieldType.NUMBER: ValueKind.NUMBER,
    FieldType.DATE: ValueKind.DATE,
    FieldType.DROPDOWN: ValueKind.STRING,
    FieldType.FORMULA: ValueKind.NUMBER,
    FieldType.BOOLEAN: ValueKind.BOOLEAN,
}


def is_numeric(value: Any) -> bool:
    """True for kernel numeric values (finite Decimal)."""
    return isinstance(value, Decimal) and value.is_finite()


def to_decimal(field_name: str, raw: Any) -> Decimal:
    """Convert a caller-supplied number into a finite Decimal.

    Raises:
        FieldTypeError: for booleans, text, non-finite numbers or any
            other non-numeric value.
    """
    if isinstance(raw, bool):
        raise FieldTypeError(field_name, "number", raw)
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, int):
        value = Decimal(raw)
    elif isinstance(raw, float):
        if math.isnan(raw) or math.isinf(raw):
            raise FieldTypeError(field_name, "number", raw)
        value = Decimal(repr(raw))
    else:
        raise FieldTypeError(field_name, "number", raw)
    if not value.is_finite():
        raise FieldTypeError(field_name, "number", raw)
    return value


def to_date(field_name: str, raw: Any) -> date:
    """Convert a date, datetime or ISO-8601 string into a ``date``."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        try:
            return date.fromisoformat(raw[:10])
        except ValueError:
            raise FieldTypeError(field_name, "date", raw) from None
    raise FieldTypeError(field_name, "date", raw)


def coerce_field_value(
    field_name: str,
    field_type: FieldType,
    raw: Any,
    options: tuple[str, ...] = (),
) -> FieldValue | None:
    """
    Validate one caller-supplied value against its definition type.

    Returns the typed value, or None when ``raw`` is None (the field is
    cleared).  Formula fields are never coerced here; their values are
    produced by the formula evaluator.

    Raises:
        FieldTypeError: value is not of the kind the type requires.
        DropdownOptionError: dropdown value is not one of ``options``.
    """
    if raw is None:
        return None

    if field_type == FieldType.NUMBER:
        return to_decimal(field_name, raw)

    if field_type == FieldType.DATE:
        return to_date(field_name, raw)

    if field_type == FieldType.BOOLEAN:
        if not isinstance(raw, bool):
            raise FieldTypeError(field_name, "boolean", raw)
        return raw

    if field_type in (FieldType.STRING, FieldType.DROPDOWN):
        if not isinstance(raw, str):
            raise FieldTypeError(field_name, "string", raw)
        if field_type == FieldType.DROPDOWN and raw not in options:
            raise DropdownOptionError(field_name, raw, options)
        return raw

    raise FieldTypeError(field_name, field_type.value, raw)


def kind_of(value: FieldValue) -> ValueKind:
    """Return the storage tag for a typed value."""
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, Decimal):
        return ValueKind.NUMBER
    if isinstance(value, date):
        return ValueKind.DATE
    if isinstance(value, str):
        return ValueKind.STRING
    raise TypeError(f"Not a field value: {type(value).__name__}")


def encode_field_map(fields: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Encode a field map into its tagged JSON storage form.

    Plain ``int``/``float`` values (template defaults) are stored as numbers.
    """
    encoded: dict[str, dict[str, Any]] = {}
    for name in sorted(fields):
        value = fields[name]
        if value is None:
            continue
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = to_decimal(name, value)
        if isinstance(value, datetime):
            value = value.date()
        kind = kind_of(value)
        if kind == ValueKind.NUMBER:
            stored: Any = str(value)
        elif kind == ValueKind.DATE:
            stored = value.isoformat()
        else:
            stored = value
        encoded[name] = {"kind": kind.value, "value": stored}
    return encoded


def decode_field_map(data: Mapping[str, Any] | None) -> dict[str, FieldValue]:
    """Decode a tagged JSON field map back into typed values."""
    decoded: dict[str, FieldValue] = {}
    for name, tagged in (data or {}).items():
        kind = ValueKind(tagged["kind"])
        raw = tagged["value"]
        if kind == ValueKind.NUMBER:
            try:
                decoded[name] = Decimal(raw)
            except InvalidOperation:
                raise FieldTypeError(name, "number", raw) from None
        elif kind == ValueKind.DATE:
            decoded[name] = date.fromisoformat(raw)
        elif kind == ValueKind.BOOLEAN:
            decoded[name] = bool(raw)
        else:
            decoded[name] = str(raw)
    return decoded
