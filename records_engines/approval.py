"""
records_engines.approval -- Condition-based approver derivation.

Responsibility:
    Match a record against its organization's approval rules and return the
    union of the approvers required by every rule that matches.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import records_kernel/domain types.

Path resolution:
    A condition path is split on ``.`` and walked through the record's
    document view (``FinanceRecord.as_document()``).  The segment ``fields``
    is special: the next segment is looked up by name in the field map and
    resolution stops there, so ``fields.amount`` is the ``amount`` field
    value.  Any missing step yields UNRESOLVED, and an UNRESOLVED value
    satisfies no operator.

Operators:
    ``$gt $gte $lt $lte``  ordering; numbers as Decimal, dates as dates
                           (ISO strings accepted as operands).  Text and
                           booleans are never ordered.
    ``$eq $ne``            equality under the same kind rules.
    ``$in``                equality with any element of a list.
    A bare value is shorthand for ``$eq``.

Invariants enforced:
    - A rule matches only if every one of its conditions holds.
    - Booleans are never compared as numbers.
    - All rules are evaluated; approvers are unioned.

Failure modes:
    - ApprovalRuleError on an unsupported operator.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from records_engines.tracer import traced_engine
from records_kernel.domain.approval import SUPPORTED_OPERATORS, ApprovalRule
from records_kernel.domain.record import FinanceRecord
from records_kernel.exceptions import ApprovalRuleError


class _Unresolved:
    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False


UNRESOLVED: Any = _Unresolved()

_ORDERING = {
    "$gt": lambda a, b: a > b,
    "$gte": lambda a, b: a >= b,
    "$lt": lambda a, b: a < b,
    "$lte": lambda a, b: a <= b,
}


def resolve_path(document: Mapping[str, Any], path: str) -> Any:
    """Value at a dotted path, or UNRESOLVED."""
    parts = path.split(".")
    current: Any = document
    for index, part in enumerate(parts):
        if not isinstance(current, Mapping) or part not in current:
            return UNRESOLVED
        if part == "fields" and isinstance(current[part], Mapping):
            if index + 1 >= len(parts):
                return UNRESOLVED
            value = current[part].get(parts[index + 1])
            return UNRESOLVED if value is None else value
        current = current[part]
        if current is None:
            return UNRESOLVED
    return current


def condition_passes(value: Any, spec: Any, path: str = "") -> bool:
    """
    True if ``value`` satisfies every operator in ``spec``.

    Raises:
        ApprovalRuleError: unsupported operator.
    """
    if not isinstance(spec, Mapping):
        spec = {"$eq": spec}

    unsupported = sorted(op for op in spec if op not in SUPPORTED_OPERATORS)
    if unsupported:
        raise ApprovalRuleError(path, f"unsupported operator {unsupported[0]!r}")
    if not spec:
        return True
    if value is UNRESOLVED:
        return False

    for op, operand in spec.items():
        if op in _ORDERING:
            pair = _ordered_pair(value, operand)
            if pair is None or not _ORDERING[op](*pair):
                return False
        elif op == "$eq":
            if not _equals(value, operand):
                return False
        elif op == "$ne":
            if _equals(value, operand):
                return False
        elif op == "$in":
            if not isinstance(operand, (list, tuple)):
                raise ApprovalRuleError(path, "$in expects a list")
            if not any(_equals(value, item) for item in operand):
                return False
    return True


def rule_passes(document: Mapping[str, Any], rule: ApprovalRule) -> bool:
    """Conjunction of every condition of the rule.  No conditions passes."""
    return all(
        condition_passes(resolve_path(document, path), spec, path)
        for path, spec in rule.conditions.items()
    )


def matching_rules(
    record: FinanceRecord,
    rules: Iterable[ApprovalRule],
) -> tuple[ApprovalRule, ...]:
    document = record.as_document()
    return tuple(rule for rule in rules if rule_passes(document, rule))


@traced_engine("approval_rules", "1.0", fingerprint_fields=("record", "rules"))
def required_approvers(
    record: FinanceRecord,
    rules: Iterable[ApprovalRule],
) -> frozenset[UUID]:
    """Union of ``required_approvers`` over every matching rule."""
    approvers: set[UUID] = set()
    for rule in matching_rules(record, rules):
        approvers.update(rule.required_approvers)
    return frozenset(approvers)


# ---------------------------------------------------------------------------
# Kind-aware comparison
# ---------------------------------------------------------------------------


def _as_number(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    return None


def _as_moment(value: Any, like: date) -> date | None:
    """Coerce ``value`` to the same temporal kind as ``like``."""
    if isinstance(like, datetime):
        if isinstance(value, datetime):
            moment = value
        elif isinstance(value, date):
            moment = datetime(value.year, value.month, value.day)
        elif isinstance(value, str):
            try:
                moment = datetime.fromisoformat(value)
            except ValueError:
                return None
        else:
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _ordered_pair(value: Any, operand: Any) -> tuple[Any, Any] | None:
    left = _as_number(value)
    if left is not None:
        right = _as_number(operand)
        return (left, right) if right is not None else None

    if isinstance(value, date):
        left_moment = _as_moment(value, value)
        right_moment = _as_moment(operand, value)
        if right_moment is None:
            return None
        return left_moment, right_moment

    return None


def _equals(value: Any, operand: Any) -> bool:
    if isinstance(value, bool) or isinstance(operand, bool):
        return isinstance(value, bool) and isinstance(operand, bool) and value == operand
    pair = _ordered_pair(value, operand)
    if pair is not None:
        return pair[0] == pair[1]
    if isinstance(value, str) and isinstance(operand, str):
        return value == operand
    return type(value) is type(operand) and value == operand
