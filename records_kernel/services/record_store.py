"""
RecordStore -- persistence boundary for finance records.

Responsibility:
    Loads records as frozen ``FinanceRecord`` DTOs and writes validated
    DTOs back to their rows.  The only code that marks a record row as
    validated for the pre-commit hook (db/hooks.py).

Architecture position:
    Kernel > Services -- imperative shell.  Called by RecordService after
    the validator, formula evaluator and invariant checks have passed.
    Never called with an unchecked record.

Invariants enforced:
    - Optimistic concurrency: ``save`` refuses a DTO whose ``version`` is
      not the row's current version, and the UPDATE itself is guarded by
      the row's version_id_col, so a write based on a stale read fails.
    - ``load(for_update=True)`` re-reads the row under SELECT ... FOR UPDATE
      (a no-op on SQLite) and overwrites any identity-map copy.
    - Timestamps come from the injected Clock.

Failure modes:
    - RecordNotFoundError: unknown id, or a record of another organization.
    - OptimisticLockError: version mismatch or StaleDataError at flush.
    - RecordPersistenceError: any other SQLAlchemyError raised by the flush.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from records_kernel.db.hooks import mark_validated
from records_kernel.domain.clock import Clock, SystemClock
from records_kernel.domain.record import FinanceRecord
from records_kernel.exceptions import (
    OptimisticLockError,
    RecordNotFoundError,
    RecordPersistenceError,
)
from records_kernel.logging_config import get_logger
from records_kernel.models.record import FinanceRecordModel
from records_kernel.services.base import BaseService

logger = get_logger("services.record_store")

_ENTITY = "FinanceRecord"


class RecordStore(BaseService[FinanceRecordModel]):

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def load(
        self,
        organization_id: UUID,
        record_id: UUID,
        for_update: bool = False,
    ) -> FinanceRecord:
        return self._load_row(organization_id, record_id, for_update).to_dto()

    def save(self, record: FinanceRecord, actor_id: UUID | None = None) -> FinanceRecord:
        """
        Insert a new record (``version == 0``) or update an existing one.

        Returns the stored record with its new version and timestamps.
        """
        now = self._clock.now()

        if not record.is_persisted:
            row = FinanceRecordModel(
                id=record.id or uuid4(),
                created_at=now,
                updated_at=now,
                created_by_id=record.created_by or actor_id,
            )
            row.apply_dto(record)
            self.session.add(row)
        else:
            row = self._load_row(record.organization_id, record.id)
            if row.version != record.version:
                logger.warning(
                    "record_version_conflict",
                    extra={
                        "record_id": str(record.id),
                        "expected_version": record.version,
                        "current_version": row.version,
                    },
                )
                raise OptimisticLockError(_ENTITY, str(record.id))
            row.apply_dto(record)
            row.updated_at = now
            row.updated_by_id = actor_id

        mark_validated(self.session, row)
        self._flush(row.id)
        return row.to_dto()

    def delete(self, organization_id: UUID, record_id: UUID) -> None:
        row = self._load_row(organization_id, record_id)
        self.session.delete(row)
        self._flush(record_id)

    def _load_row(
        self,
        organization_id: UUID,
        record_id: UUID | None,
        for_update: bool = False,
    ) -> FinanceRecordModel:
        if record_id is None:
            raise RecordNotFoundError("None")
        if for_update:
            row = self.session.get(
                FinanceRecordModel,
                record_id,
                with_for_update=True,
                populate_existing=True,
            )
        else:
            row = self.session.get(FinanceRecordModel, record_id)
        if row is None or row.organization_id != organization_id:
            raise RecordNotFoundError(str(record_id))
        return row

    def _flush(self, record_id: UUID) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning("record_stale_write", extra={"record_id": str(record_id)})
            raise OptimisticLockError(_ENTITY, str(record_id)) from exc
        except SQLAlchemyError as exc:
            logger.error(
                "record_persistence_failed",
                extra={"record_id": str(record_id)},
                exc_info=True,
            )
            raise RecordPersistenceError(str(record_id)) from exc
