"""
records_engines.validation -- Record reference and schema validation.

Responsibility:
    Check a candidate record against its organization's registry snapshot
    and type its field values at the boundary.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The snapshot is built by
    FieldDefinitionRegistry.snapshot() before this runs.

Checks, in order (the first failure aborts):
    1. Category exists (CategoryNotFoundError) and belongs to the record's
       organization (CategoryOrganizationMismatchError).
    2. If a partner is set: it exists (PartnerNotFoundError), belongs to the
       organization (PartnerOrganizationMismatchError), and its type fits the
       record type, vendor for expense and client for revenue
       (PartnerTypeMismatchError).
    3. Every field key names a definition of the organization
       (UnknownFieldError) applicable to the record type
       (FieldNotApplicableError).
    4. Every non-formula value is coerced to its definition's kind
       (FieldTypeError, DropdownOptionError).  None removes the value.

Resolved definitions:
    Every applicable non-formula definition, and of the formulas only
    those in scope: formula fields the record carries a key for, the
    final-amount formula, and every formula those reference.  An optional
    formula the record does not carry is never evaluated.

Invariants enforced:
    - Caller-supplied values for formula fields are discarded; formula
      values only ever come from the evaluator.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace

from records_engines.tracer import traced_engine
from records_kernel.domain.record import FinanceRecord
from records_kernel.domain.references import EXPECTED_PARTNER_TYPE, RegistrySnapshot
from records_kernel.domain.schema import FieldDefinition
from records_kernel.domain.expression import parse_expression
from records_kernel.domain.values import FieldValue, coerce_field_value
from records_kernel.exceptions import (
    CategoryNotFoundError,
    CategoryOrganizationMismatchError,
    FieldNotApplicableError,
    PartnerNotFoundError,
    PartnerOrganizationMismatchError,
    PartnerTypeMismatchError,
    UnknownFieldError,
)


@dataclass(frozen=True)
class ValidationResult:
    """The record with typed fields, and the definitions it resolves to."""

    record: FinanceRecord
    definitions: tuple[FieldDefinition, ...]


@traced_engine("record_validation", "1.0", fingerprint_fields=("record",))
def validate_record(record: FinanceRecord, snapshot: RegistrySnapshot) -> ValidationResult:
    _check_category(record, snapshot)
    _check_partner(record, snapshot)

    org = str(record.organization_id)
    typed: dict[str, FieldValue] = {}
    for name, raw in record.fields.items():
        definition = snapshot.definition_named(name)
        if definition is None:
            raise UnknownFieldError(name, org)
        if not definition.applies_to(record.record_type):
            raise FieldNotApplicableError(name, record.record_type.value)
        if definition.is_formula:
            continue
        value = coerce_field_value(name, definition.field_type, raw, definition.options)
        if value is not None:
            typed[name] = value

    return ValidationResult(
        record=replace(record, fields=typed),
        definitions=resolve_definitions(
            snapshot.applicable(record.record_type), record.fields
        ),
    )


def resolve_definitions(
    applicable: tuple[FieldDefinition, ...],
    carried: Iterable[str],
) -> tuple[FieldDefinition, ...]:
    """Applicable definitions with the formulas narrowed to those in scope.

    Keeps the order of ``applicable``.  Formulas whose expression does not
    parse stay in scope so the evaluator reports the syntax error.
    """
    formulas = {d.name: d for d in applicable if d.is_formula}
    pending = [name for name in carried if name in formulas]
    pending.extend(d.name for d in applicable if d.is_formula and d.is_final_amount)

    in_scope: set[str] = set()
    while pending:
        name = pending.pop()
        if name in in_scope:
            continue
        in_scope.add(name)
        parsed = parse_expression(formulas[name].expression or "")
        if isinstance(parsed, list):
            continue
        pending.extend(ref for ref in parsed.names if ref in formulas)

    return tuple(d for d in applicable if not d.is_formula or d.name in in_scope)


def _check_category(record: FinanceRecord, snapshot: RegistrySnapshot) -> None:
    category = snapshot.category
    if category is None or category.id != record.category_id:
        raise CategoryNotFoundError(str(record.category_id))
    if category.organization_id != record.organization_id:
        raise CategoryOrganizationMismatchError(
            str(record.category_id), str(record.organization_id)
        )


def _check_partner(record: FinanceRecord, snapshot: RegistrySnapshot) -> None:
    if record.partner_id is None:
        return
    partner = snapshot.partner
    if partner is None or partner.id != record.partner_id:
        raise PartnerNotFoundError(str(record.partner_id))
    if partner.organization_id != record.organization_id:
        raise PartnerOrganizationMismatchError(
            str(record.partner_id), str(record.organization_id)
        )
    if partner.partner_type != EXPECTED_PARTNER_TYPE[record.record_type]:
        raise PartnerTypeMismatchError(
            str(record.partner_id),
            partner.partner_type.value,
            record.record_type.value,
        )
