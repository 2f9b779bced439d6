"""
Module: records_kernel.models.record
Responsibility: ORM persistence for finance records (expenses and revenues).
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain value helpers; written only through RecordStore.

Invariants enforced:
    - version is SQLAlchemy's version_id_col: every UPDATE is issued as
      ``... WHERE id = :id AND version = :loaded_version`` and bumps it, so a
      write based on a stale read fails with StaleDataError.
    - fields is stored in its tagged form ({"name": {"kind", "value"}}).
    - Approval sets are stored as sorted JSON arrays of UUID strings.
    - New or modified rows are refused at flush time unless RecordStore
      marked them validated (see db/hooks.py).

Failure modes:
    - StaleDataError on a concurrent update (translated to
      OptimisticLockError by RecordStore).
    - UnvalidatedRecordWriteError when a row is flushed without passing
      through the record pipeline.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from records_kernel.db.base import OrganizationScoped, TrackedBase, UUIDString

if TYPE_CHECKING:
    from records_kernel.domain.record import FinanceRecord


class FinanceRecordModel(OrganizationScoped, TrackedBase):
    """
    Persistent finance record.

    Guarantees:
        - version starts at 1 on INSERT and increases by one per UPDATE.
        - to_dto() returns typed field values and frozenset approval sets.
    """

    __tablename__ = "finance_records"

    __table_args__ = (
        Index("idx_finance_record_org_created", "organization_id", "created_at"),
        Index("idx_finance_record_status", "status"),
        Index("idx_finance_record_category", "category_id"),
        Index("idx_finance_record_partner", "partner_id"),
    )

    record_type: Mapped[str] = mapped_column(String(10), nullable=False)
    category_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    partner_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    fields: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    recurrence_frequency: Mapped[str] = mapped_column(
        String(20), nullable=False, default="none"
    )
    next_occurrence: Mapped[date | None] = mapped_column(nullable=True)
    end_date: Mapped[date | None] = mapped_column(nullable=True)

    approvals_required: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    approvals_given: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    approved_by: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    paid_on: Mapped[date | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<FinanceRecord {self.id} {self.record_type} status={self.status} v{self.version}>"

    def to_dto(self) -> FinanceRecord:
        """Convert ORM model to frozen domain DTO."""
        from records_kernel.domain.record import (
            FinanceRecord,
            RecordStatus,
            Recurrence,
            RecurrenceFrequency,
        )
        from records_kernel.domain.values import RecordType, decode_field_map

        return FinanceRecord(
            organization_id=self.organization_id,
            record_type=RecordType(self.record_type),
            category_id=self.category_id,
            fields=decode_field_map(self.fields),
            status=RecordStatus(self.status),
            partner_id=self.partner_id,
            recurrence=Recurrence(
                frequency=RecurrenceFrequency(self.recurrence_frequency),
                next_occurrence=self.next_occurrence,
                end_date=self.end_date,
            ),
            approvals_required=_uuid_set(self.approvals_required),
            approvals_given=_uuid_set(self.approvals_given),
            approved_by=_uuid_set(self.approved_by),
            created_by=self.created_by_id,
            paid_on=self.paid_on,
            id=self.id,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def apply_dto(self, record: FinanceRecord) -> None:
        """Copy a domain record's mutable state onto this row.

        Every JSON column is assigned a fresh object so the change is seen
        by the unit of work.
        """
        from records_kernel.domain.values import encode_field_map

        self.organization_id = record.organization_id
        self.record_type = record.record_type.value
        self.category_id = record.category_id
        self.partner_id = record.partner_id
        self.status = record.status.value
        self.fields = encode_field_map(record.fields)
        self.recurrence_frequency = record.recurrence.frequency.value
        self.next_occurrence = record.recurrence.next_occurrence
        self.end_date = record.recurrence.end_date
        self.approvals_required = _uuid_list(record.approvals_required)
        self.approvals_given = _uuid_list(record.approvals_given)
        self.approved_by = _uuid_list(record.approved_by)
        self.paid_on = record.paid_on
        if record.created_by is not None and self.created_by_id is None:
            self.created_by_id = record.created_by


def _uuid_set(values: list | None) -> frozenset[UUID]:
    return frozenset(UUID(v) for v in values or ())


def _uuid_list(values: frozenset[UUID]) -> list[str]:
    return sorted(str(v) for v in values)
