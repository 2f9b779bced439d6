"""
Configuration Validator (``records_config.validator``).

Responsibility
--------------
Checks a parsed ``RecordsSettings`` before it is used: the default record
status, the log level, and every seed field definition and approval rule
against the same shape rules the kernel services enforce.

Invariants enforced
-------------------
* Seed field names are unique.
* At most one seed definition per record type is the final amount.
* Seed formulas and approval conditions use only the supported grammar.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``)  -> the configuration MUST
  NOT be used.
* Warnings  -> usable, but should be reviewed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from records_config.schema import RecordsSettings
from records_kernel.domain.approval import check_conditions
from records_kernel.domain.lifecycle import INITIAL_STATUSES
from records_kernel.domain.record import RecordStatus
from records_kernel.domain.schema import (
    FieldDefinition,
    check_definition_shape,
    parse_applicability,
)
from records_kernel.domain.values import FieldType, RecordType
from records_kernel.exceptions import ApprovalRuleError, InvalidFieldDefinitionError


@dataclass
class ConfigValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_settings(settings: RecordsSettings) -> ConfigValidationResult:
    """Validate ``settings``; never raises for content problems."""
    result = ConfigValidationResult()

    _validate_records_section(settings, result)
    _validate_field_definitions(settings, result)
    _validate_approval_rules(settings, result)

    return result


def _validate_records_section(settings: RecordsSettings, result: ConfigValidationResult) -> None:
    try:
        status = RecordStatus(settings.default_record_status)
    except ValueError:
        result.add_error(f"records.default_status: unknown status {settings.default_record_status!r}")
    else:
        if status not in INITIAL_STATUSES:
            result.add_error(
                f"records.default_status: records cannot be created as {status.value!r}"
            )

    if not isinstance(logging.getLevelName(settings.log_level), int):
        result.add_error(f"logging.level: unknown level {settings.log_level!r}")

    payment = settings.partial_payment
    if payment.total_field == payment.paid_field:
        result.add_error("records.partial_payment: total_field and paid_field must differ")


def _validate_field_definitions(
    settings: RecordsSettings,
    result: ConfigValidationResult,
) -> None:
    seen: set[str] = set()
    final_amounts: dict[RecordType, list[str]] = {t: [] for t in RecordType}

    for seed in settings.field_definitions:
        if seed.name in seen:
            result.add_error(f"seed.field_definitions: duplicate name {seed.name!r}")
            continue
        seen.add(seed.name)

        try:
            definition = FieldDefinition(
                name=seed.name,
                field_type=FieldType(seed.field_type),
                label=seed.label,
                options=seed.options,
                expression=seed.expression,
                applicable_to=parse_applicability(seed.applicable_to),
                config=seed.config,
            )
            check_definition_shape(definition)
        except ValueError:
            result.add_error(f"seed field {seed.name!r}: unknown type {seed.field_type!r}")
            continue
        except InvalidFieldDefinitionError as exc:
            result.add_error(f"seed field {seed.name!r}: {exc.reason}")
            continue

        if definition.is_final_amount:
            for record_type in RecordType:
                if definition.applies_to(record_type):
                    final_amounts[record_type].append(definition.name)

    for record_type, names in final_amounts.items():
        if len(names) > 1:
            result.add_error(
                f"seed.field_definitions: several final-amount fields for "
                f"{record_type.value}: {', '.join(names)}"
            )
        elif settings.field_definitions and not names:
            result.add_warning(
                f"seed.field_definitions: no final-amount field for {record_type.value}"
            )


def _validate_approval_rules(settings: RecordsSettings, result: ConfigValidationResult) -> None:
    for rule in settings.approval_rules:
        label = rule.name or "<unnamed>"
        try:
            check_conditions(rule.conditions)
        except ApprovalRuleError as exc:
            result.add_error(f"seed rule {label!r}: {exc.path}: {exc.reason}")

        if not rule.required_approvers:
            result.add_warning(f"seed rule {label!r}: no required approvers")
        for approver in rule.required_approvers:
            try:
                UUID(approver)
            except ValueError:
                result.add_error(f"seed rule {label!r}: approver {approver!r} is not a UUID")
