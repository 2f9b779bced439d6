"""
Record lifecycle (``records_kernel.domain.lifecycle``).

Responsibility
--------------
The record status state machine and the approval-set arithmetic that
drives it.  Every function is pure: it takes a ``FinanceRecord`` and
returns a new one, or raises.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.  The approvers a
cycle needs are computed by ``records_engines.approval`` and passed in.

Invariants enforced
-------------------
* ``RECORD_TRANSITIONS`` lists the only status changes a caller may
  request.  ``approved`` is never requested directly; it is reached by
  ``apply_approval`` or by auto-approval when a cycle needs nobody.
* ``paid`` and ``completed`` have no incoming edge.
* Entering ``pending_approval`` resets ``approvals_given``.  Returning to
  ``draft`` clears every approval set.
* ``apply_approval`` is idempotent: approving twice equals approving once.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from uuid import UUID

from records_kernel.domain.record import FinanceRecord, RecordStatus
from records_kernel.exceptions import (
    InvalidApprovalStateError,
    InvalidStatusTransitionError,
    NotAuthorizedApproverError,
)

DEFAULT_TOTAL_FIELD = "total_amount"
DEFAULT_PAID_FIELD = "amount_paid"

RECORD_TRANSITIONS: dict[RecordStatus, frozenset[RecordStatus]] = {
    RecordStatus.DRAFT: frozenset({RecordStatus.PENDING_APPROVAL}),
    RecordStatus.PENDING_APPROVAL: frozenset({RecordStatus.DRAFT}),
    RecordStatus.APPROVED: frozenset({
        RecordStatus.PENDING_APPROVAL,
        RecordStatus.DRAFT,
    }),
    RecordStatus.PAID: frozenset({RecordStatus.PENDING_APPROVAL}),
    RecordStatus.COMPLETED: frozenset({RecordStatus.PENDING_APPROVAL}),
}

# Statuses a record may be created in
INITIAL_STATUSES: frozenset[RecordStatus] = frozenset({
    RecordStatus.DRAFT,
    RecordStatus.PENDING_APPROVAL,
    RecordStatus.APPROVED,
})


def check_initial_status(status: RecordStatus) -> None:
    if status not in INITIAL_STATUSES:
        raise InvalidStatusTransitionError(None, status.value)


def check_transition(from_status: RecordStatus, to_status: RecordStatus) -> None:
    """
    Raises:
        InvalidStatusTransitionError: ``to_status`` is not reachable from
            ``from_status`` by a caller request.
    """
    if to_status not in RECORD_TRANSITIONS.get(from_status, frozenset()):
        raise InvalidStatusTransitionError(from_status.value, to_status.value)


def start_approval_cycle(
    record: FinanceRecord,
    required: frozenset[UUID],
) -> FinanceRecord:
    """Enter ``pending_approval`` with a freshly computed approver set.

    With no required approvers the record is approved immediately.
    """
    status = RecordStatus.PENDING_APPROVAL if required else RecordStatus.APPROVED
    return replace(
        record,
        status=status,
        approvals_required=frozenset(required),
        approvals_given=frozenset(),
        approved_by=frozenset(),
    )


def return_to_draft(record: FinanceRecord) -> FinanceRecord:
    return replace(
        record,
        status=RecordStatus.DRAFT,
        approvals_required=frozenset(),
        approvals_given=frozenset(),
        approved_by=frozenset(),
    )


def apply_approval(record: FinanceRecord, approver_id: UUID) -> FinanceRecord:
    """
    Record one approver's approval.

    Advances to ``approved`` once every required approver has approved.

    Raises:
        InvalidApprovalStateError: record is not ``pending_approval``.
        NotAuthorizedApproverError: approver is not in ``approvals_required``.
    """
    record_id = str(record.id)
    if record.status != RecordStatus.PENDING_APPROVAL:
        raise InvalidApprovalStateError(record_id, record.status.value)
    if approver_id not in record.approvals_required:
        raise NotAuthorizedApproverError(record_id, str(approver_id))

    given = record.approvals_given | {approver_id}
    status = (
        RecordStatus.APPROVED
        if given >= record.approvals_required
        else RecordStatus.PENDING_APPROVAL
    )
    return replace(record, status=status, approvals_given=given, approved_by=given)


@dataclass(frozen=True)
class LifecycleSettings:
    """Organization-independent knobs of the record lifecycle."""

    default_status: RecordStatus = RecordStatus.APPROVED
    total_field: str = DEFAULT_TOTAL_FIELD
    paid_field: str = DEFAULT_PAID_FIELD

    def __post_init__(self) -> None:
        check_initial_status(self.default_status)
