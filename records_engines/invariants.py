"""
records_engines.invariants -- Record-level invariants checked before save.

Responsibility:
    The checks that need a record's fully computed field map: exactly one
    final-amount field with a numeric value, the partial-payment bound,
    and recurrence date ordering.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Runs after validation and
    formula evaluation, before the record is stored.

Failure modes:
    - FinalAmountConfigError: zero or several applicable definitions carry
      ``config.isFinalAmount = true`` (a schema misconfiguration).
    - FieldTypeError: final-amount value missing or non-numeric; a
      partial-payment field holding a non-number.
    - PartialPaymentExceededError: amount paid exceeds the total.
    - InvalidRecurrenceError: next occurrence after the end date.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal

from records_engines.tracer import traced_engine
from records_kernel.domain.lifecycle import DEFAULT_PAID_FIELD, DEFAULT_TOTAL_FIELD
from records_kernel.domain.record import FinanceRecord, Recurrence
from records_kernel.domain.schema import FieldDefinition
from records_kernel.domain.values import FieldValue, RecordType, is_numeric
from records_kernel.exceptions import (
    FieldTypeError,
    FinalAmountConfigError,
    InvalidRecurrenceError,
    PartialPaymentExceededError,
)


def final_amount_definition(
    definitions: Sequence[FieldDefinition],
    record_type: RecordType,
) -> FieldDefinition:
    """The single applicable definition flagged ``isFinalAmount``."""
    flagged = tuple(d for d in definitions if d.applies_to(record_type) and d.is_final_amount)
    if len(flagged) != 1:
        raise FinalAmountConfigError(record_type.value, tuple(d.name for d in flagged))
    return flagged[0]


def check_final_amount(
    fields: Mapping[str, FieldValue],
    definitions: Sequence[FieldDefinition],
    record_type: RecordType,
) -> Decimal:
    """Return the record's final amount."""
    definition = final_amount_definition(definitions, record_type)
    value = fields.get(definition.name)
    if not is_numeric(value):
        raise FieldTypeError(definition.name, "number", value)
    return value


def check_partial_payment(
    fields: Mapping[str, FieldValue],
    total_field: str = DEFAULT_TOTAL_FIELD,
    paid_field: str = DEFAULT_PAID_FIELD,
) -> None:
    """When both fields are present, the paid amount must not exceed the total."""
    if total_field not in fields or paid_field not in fields:
        return
    total = fields[total_field]
    paid = fields[paid_field]
    if not is_numeric(total):
        raise FieldTypeError(total_field, "number", total)
    if not is_numeric(paid):
        raise FieldTypeError(paid_field, "number", paid)
    if paid > total:
        raise PartialPaymentExceededError(total_field, paid_field, str(total), str(paid))


def check_recurrence(recurrence: Recurrence) -> None:
    if (
        recurrence.next_occurrence is not None
        and recurrence.end_date is not None
        and recurrence.next_occurrence > recurrence.end_date
    ):
        raise InvalidRecurrenceError(
            f"next occurrence {recurrence.next_occurrence.isoformat()} is after "
            f"end date {recurrence.end_date.isoformat()}"
        )


@traced_engine("record_invariants", "1.0")
def check_record_invariants(
    record: FinanceRecord,
    definitions: Sequence[FieldDefinition],
    total_field: str = DEFAULT_TOTAL_FIELD,
    paid_field: str = DEFAULT_PAID_FIELD,
) -> Decimal:
    """Run every record-level invariant; returns the final amount."""
    final_amount = check_final_amount(record.fields, definitions, record.record_type)
    check_partial_payment(record.fields, total_field, paid_field)
    check_recurrence(record.recurrence)
    return final_amount
