"""
Field definition types (``records_kernel.domain.schema``).

Responsibility
--------------
Pure value objects for the organization-defined record schema: the
``FieldDefinition`` entry, its ``applicableTo`` scope, and the per-type
shape rules every definition must satisfy before it is stored.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Dropdown definitions carry a non-empty tuple of string options.
* Formula definitions carry an expression inside the restricted arithmetic
  grammar of ``records_kernel.domain.expression``.
* Names are identifiers so formulas can reference them.
"""

from __future__ import annotations

import keyword
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

from records_kernel.domain.expression import parse_expression, validate_expression
from records_kernel.domain.values import FieldType, RecordType
from records_kernel.exceptions import InvalidFieldDefinitionError

# Reserved config key marking the record's settlement amount field
FINAL_AMOUNT_KEY = "isFinalAmount"


class Applicability(str, Enum):
    """Record types a field definition applies to."""

    EXPENSE = "expense"
    REVENUE = "revenue"
    BOTH = "both"

    def includes(self, record_type: RecordType) -> bool:
        return self == Applicability.BOTH or self.value == record_type.value


@dataclass(frozen=True)
class FieldDefinition:
    """One named, typed schema entry of an organization.

    ``config`` is free-form; the reserved key ``isFinalAmount`` marks the
    settlement amount field.
    """

    name: str
    field_type: FieldType
    label: str = ""
    options: tuple[str, ...] = ()
    expression: str | None = None
    applicable_to: Applicability = Applicability.BOTH
    config: Mapping[str, Any] = field(default_factory=dict)
    id: UUID | None = None
    organization_id: UUID | None = None

    @property
    def is_formula(self) -> bool:
        return self.field_type == FieldType.FORMULA

    @property
    def is_final_amount(self) -> bool:
        return self.config.get(FINAL_AMOUNT_KEY) is True

    def applies_to(self, record_type: RecordType) -> bool:
        return self.applicable_to.includes(record_type)


def parse_applicability(value: Any) -> Applicability:
    """Accept ``"expense"``, ``["revenue"]`` or an Applicability.

    None and empty sequences default to BOTH.
    """
    if value is None:
        return Applicability.BOTH
    if isinstance(value, Applicability):
        return value
    if isinstance(value, (list, tuple)):
        if not value:
            return Applicability.BOTH
        value = value[0]
    try:
        return Applicability(value)
    except ValueError:
        raise InvalidFieldDefinitionError(
            "applicableTo", f"must be one of expense, revenue, both (got {value!r})"
        ) from None


def check_definition_shape(definition: FieldDefinition) -> None:
    """
    Enforce the per-type constraints of a field definition.

    Raises:
        InvalidFieldDefinitionError: on the first violated constraint.
    """
    name = definition.name
    if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
        raise InvalidFieldDefinitionError(
            str(name), "name must be an identifier (letters, digits, underscore)"
        )

    if definition.field_type == FieldType.DROPDOWN:
        if not definition.options:
            raise InvalidFieldDefinitionError(
                name, "dropdown fields require a non-empty options array"
            )
        if not all(isinstance(o, str) for o in definition.options):
            raise InvalidFieldDefinitionError(name, "dropdown options must be strings")

    if definition.field_type == FieldType.FORMULA:
        expression = definition.expression
        if not isinstance(expression, str) or not expression.strip():
            raise InvalidFieldDefinitionError(
                name, "formula fields require an expression string"
            )
        errors = validate_expression(expression)
        if errors:
            raise InvalidFieldDefinitionError(name, errors[0].message)
        if name in _names_in(expression):
            raise InvalidFieldDefinitionError(name, "formula cannot reference itself")

    if not isinstance(definition.config, Mapping):
        raise InvalidFieldDefinitionError(name, "config must be a mapping")


def definitions_for(
    definitions: Iterable[FieldDefinition],
    record_type: RecordType,
) -> tuple[FieldDefinition, ...]:
    """Definitions applicable to ``record_type``, in the given order."""
    return tuple(d for d in definitions if d.applies_to(record_type))


def _names_in(expression: str) -> tuple[str, ...]:
    parsed = parse_expression(expression)
    if isinstance(parsed, list):
        return ()
    return parsed.names
