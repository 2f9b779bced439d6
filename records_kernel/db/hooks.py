"""
Pre-commit validation hook for finance record rows.

Every record write must pass through the record pipeline (validator,
formula evaluator, invariant checks) before it reaches the database.
RecordStore marks each row it writes in ``session.info``; this
``before_flush`` listener refuses to flush any new or modified
FinanceRecordModel row that carries no mark:

    RecordStore.save()  -->  mark_validated(session, row)
         |
         v
    session.flush()
         |
         v
    [before_flush] --> _check_records_validated() --> UnvalidatedRecordWriteError
         |
         v
    SQL sent to database (only if every record row was marked)

Marks are consumed by the check, so each flush needs a fresh pass through
the pipeline.  Deletes are not checked.

Usage:

    from records_kernel.db.hooks import register_record_validation_hook
    register_record_validation_hook()  # called by init_engine_from_url()
"""

from sqlalchemy import event
from sqlalchemy.orm import Session

from records_kernel.exceptions import UnvalidatedRecordWriteError
from records_kernel.logging_config import get_logger

logger = get_logger("db.hooks")

_VALIDATED_KEY = "validated_records"


def mark_validated(session: Session, row) -> None:
    """Mark a record row as having passed the validation pipeline."""
    session.info.setdefault(_VALIDATED_KEY, set()).add(row.id)


def _check_records_validated(session, flush_context, instances):
    from records_kernel.models.record import FinanceRecordModel

    validated: set = session.info.get(_VALIDATED_KEY, set())

    pending = [obj for obj in session.new if isinstance(obj, FinanceRecordModel)]
    pending.extend(
        obj
        for obj in session.dirty
        if isinstance(obj, FinanceRecordModel) and session.is_modified(obj)
    )

    for obj in pending:
        if obj.id not in validated:
            logger.error(
                "unvalidated_record_write_blocked",
                extra={"record_id": str(obj.id)},
            )
            raise UnvalidatedRecordWriteError(record_id=str(obj.id))

    for obj in pending:
        validated.discard(obj.id)


def register_record_validation_hook() -> None:
    """Register the before_flush listener.  Safe to call more than once."""
    if not event.contains(Session, "before_flush", _check_records_validated):
        event.listen(Session, "before_flush", _check_records_validated)
