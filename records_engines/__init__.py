"""
Module: records_engines
Responsibility:
    Re-exports the pure engines that turn a candidate finance record into
    a checked one: validation against the registry snapshot, formula
    evaluation, record invariants, and approval rule matching.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import records_kernel domain types, values and exceptions.
    MUST NOT import records_services or records_config.

Invariants enforced:
    - Determinism: identical inputs always produce identical outputs.
    - Decimal-only arithmetic for numeric fields.
    - Every public engine call is traced via ``@traced_engine``.
"""

from records_engines.approval import (
    UNRESOLVED,
    condition_passes,
    matching_rules,
    required_approvers,
    resolve_path,
    rule_passes,
)
from records_engines.formula import evaluate_formulas, evaluation_order
from records_engines.invariants import (
    check_final_amount,
    check_partial_payment,
    check_recurrence,
    check_record_invariants,
    final_amount_definition,
)
from records_engines.validation import ValidationResult, validate_record

__all__ = [
    "UNRESOLVED",
    "ValidationResult",
    "check_final_amount",
    "check_partial_payment",
    "check_record_invariants",
    "check_recurrence",
    "condition_passes",
    "evaluate_formulas",
    "evaluation_order",
    "final_amount_definition",
    "matching_rules",
    "required_approvers",
    "resolve_path",
    "rule_passes",
    "validate_record",
]
