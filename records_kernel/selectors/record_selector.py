"""
Module: records_kernel.selectors.record_selector
Responsibility: Filtered, paginated listing of an organization's finance
    records, newest first.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Results are always restricted to one organization.
    - Ordering is created_at descending, then id, so pages are stable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from uuid import UUID

from sqlalchemy import func, select

from records_kernel.domain.record import FinanceRecord, RecordStatus
from records_kernel.domain.values import RecordType
from records_kernel.models.record import FinanceRecordModel
from records_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class RecordFilter:
    """Optional filters; None means "any"."""

    record_type: RecordType | None = None
    category_id: UUID | None = None
    status: RecordStatus | None = None
    partner_id: UUID | None = None
    created_from: datetime | date | None = None
    created_to: datetime | date | None = None


@dataclass(frozen=True)
class RecordPage:
    records: tuple[FinanceRecord, ...]
    total_records: int
    total_pages: int
    current_page: int
    limit: int


class RecordSelector(BaseSelector[FinanceRecordModel]):

    def list_records(
        self,
        organization_id: UUID,
        filters: RecordFilter | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> RecordPage:
        """
        One page of records matching ``filters``.

        Date-only bounds cover the whole day: ``created_from`` starts at
        00:00 and ``created_to`` ends at 23:59:59.999999 UTC.
        """
        page = max(int(page), 1)
        limit = max(int(limit), 1)
        conditions = self._conditions(organization_id, filters or RecordFilter())

        total = self.session.execute(
            select(func.count()).select_from(FinanceRecordModel).where(*conditions)
        ).scalar_one()

        stmt = (
            select(FinanceRecordModel)
            .where(*conditions)
            .order_by(FinanceRecordModel.created_at.desc(), FinanceRecordModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = self.session.execute(stmt).scalars().all()

        return RecordPage(
            records=tuple(row.to_dto() for row in rows),
            total_records=total,
            total_pages=math.ceil(total / limit),
            current_page=page,
            limit=limit,
        )

    def _conditions(self, organization_id: UUID, filters: RecordFilter) -> list:
        conditions = [FinanceRecordModel.organization_id == organization_id]
        if filters.record_type is not None:
            conditions.append(FinanceRecordModel.record_type == RecordType(filters.record_type).value)
        if filters.category_id is not None:
            conditions.append(FinanceRecordModel.category_id == filters.category_id)
        if filters.status is not None:
            conditions.append(FinanceRecordModel.status == RecordStatus(filters.status).value)
        if filters.partner_id is not None:
            conditions.append(FinanceRecordModel.partner_id == filters.partner_id)
        if filters.created_from is not None:
            conditions.append(
                FinanceRecordModel.created_at >= _as_datetime(filters.created_from, time.min)
            )
        if filters.created_to is not None:
            conditions.append(
                FinanceRecordModel.created_at <= _as_datetime(filters.created_to, time.max)
            )
        return conditions


def _as_datetime(value: datetime | date, bound: time) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, bound, tzinfo=timezone.utc)
