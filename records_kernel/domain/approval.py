"""
Approval rule types (``records_kernel.domain.approval``).

Responsibility
--------------
Pure value object for a tenant approval rule: a conjunction of
dotted-path conditions and the approvers it requires when it matches.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Evaluated by
``records_engines.approval``.

Condition shape
---------------
``{"fields.amount": {"$gt": 10000}, "type": {"$eq": "expense"}}``.  A
bare value (``{"type": "expense"}``) is shorthand for ``$eq``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from records_kernel.exceptions import ApprovalRuleError

# Comparison operators understood by the rule engine
SUPPORTED_OPERATORS: frozenset[str] = frozenset({
    "$gt", "$lt", "$gte", "$lte", "$eq", "$ne", "$in",
})


@dataclass(frozen=True)
class ApprovalRule:
    """Every condition must hold for the rule to require its approvers."""

    organization_id: UUID
    conditions: Mapping[str, Any] = field(default_factory=dict)
    required_approvers: frozenset[UUID] = frozenset()
    name: str = ""
    id: UUID | None = None


def check_conditions(conditions: Any) -> None:
    """
    Reject malformed rule conditions before they are stored.

    Raises:
        ApprovalRuleError: on the first malformed path, operator or operand.
    """
    if not isinstance(conditions, Mapping):
        raise ApprovalRuleError("", "conditions must be a mapping of path -> comparison")
    for path, spec in conditions.items():
        if not isinstance(path, str) or not path.strip():
            raise ApprovalRuleError(str(path), "condition path must be a non-empty string")
        if not isinstance(spec, Mapping):
            _check_operand(path, spec)
            continue
        if not spec:
            raise ApprovalRuleError(path, "comparison spec is empty")
        for op, operand in spec.items():
            if op not in SUPPORTED_OPERATORS:
                raise ApprovalRuleError(path, f"unsupported operator {op!r}")
            if op == "$in" and not isinstance(operand, (list, tuple)):
                raise ApprovalRuleError(path, "$in expects a list")
            _check_operand(path, operand)


def _check_operand(path: str, operand: Any) -> None:
    # Rules are stored as JSON; dates are written as ISO strings
    if isinstance(operand, (list, tuple)):
        for item in operand:
            _check_operand(path, item)
    elif operand is not None and not isinstance(operand, (str, int, float, bool)):
        raise ApprovalRuleError(
            path, f"operand must be a string, number, boolean or list (got {type(operand).__name__})"
        )
