"""
Finance record types (``records_kernel.domain.record``).

Responsibility
--------------
Pure value objects for a finance record: its status, recurrence, typed
field map and approval sets.  Mutation happens by building a new record
with ``dataclasses.replace``; nothing here touches the database.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``fields`` maps definition names to typed values (``FieldValue``).
* Approval sets are frozensets of approver UUIDs so approving is
  idempotent by construction.
* ``as_document()`` is the read-only view the approval rule engine walks
  with dotted paths (``fields.amount``, ``type``, ``status`` ...).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from records_kernel.domain.values import FieldValue, RecordType


class RecordStatus(str, Enum):
    """Finance record lifecycle states."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    PAID = "paid"
    COMPLETED = "completed"


class RecurrenceFrequency(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class Recurrence:
    """Repeat schedule of a record.  Informational; nothing is generated."""

    frequency: RecurrenceFrequency = RecurrenceFrequency.NONE
    next_occurrence: date | None = None
    end_date: date | None = None

    def as_document(self) -> dict[str, Any]:
        return {
            "frequency": self.frequency.value,
            "nextOccurrence": self.next_occurrence,
            "endDate": self.end_date,
        }


NO_RECURRENCE = Recurrence()


@dataclass(frozen=True)
class FinanceRecord:
    """
    One expense or revenue record of an organization.

    ``version`` is the persisted revision number; 0 means the record has
    never been stored.
    """

    organization_id: UUID
    record_type: RecordType
    category_id: UUID
    fields: Mapping[str, FieldValue] = field(default_factory=dict)
    status: RecordStatus = RecordStatus.DRAFT
    partner_id: UUID | None = None
    recurrence: Recurrence = NO_RECURRENCE
    approvals_required: frozenset[UUID] = frozenset()
    approvals_given: frozenset[UUID] = frozenset()
    approved_by: frozenset[UUID] = frozenset()
    created_by: UUID | None = None
    paid_on: date | None = None
    id: UUID | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_persisted(self) -> bool:
        return self.version > 0

    @property
    def fully_approved(self) -> bool:
        return self.approvals_given >= self.approvals_required

    def as_document(self) -> dict[str, Any]:
        """Document view used for rule path resolution."""
        return {
            "id": str(self.id) if self.id else None,
            "organizationId": str(self.organization_id),
            "type": self.record_type.value,
            "categoryId": str(self.category_id),
            "partnerId": str(self.partner_id) if self.partner_id else None,
            "status": self.status.value,
            "fields": dict(self.fields),
            "recurrence": self.recurrence.as_document(),
            "createdBy": str(self.created_by) if self.created_by else None,
            "approvalsRequired": sorted(str(a) for a in self.approvals_required),
            "approvalsGiven": sorted(str(a) for a in self.approvals_given),
            "approvedBy": sorted(str(a) for a in self.approved_by),
            "paidOn": self.paid_on,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class RecordTemplate:
    """Named defaults for new records of one type."""

    organization_id: UUID
    name: str
    record_type: RecordType
    category_id: UUID | None = None
    default_fields: Mapping[str, FieldValue] = field(default_factory=dict)
    id: UUID | None = None
