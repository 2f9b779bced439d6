"""
records_services.record_service -- Finance record lifecycle orchestration.

Responsibility:
    Every create, update, status transition and approval of a finance
    record goes through this service.  It ties the kernel stores to the
    pure engines around one record:

        candidate record
             |
             v
        validate_record (registry snapshot)  -- category, partner, field keys, kinds
             |
             v
        evaluate_formulas                     -- derived numeric fields
             |
             v
        check_record_invariants               -- final amount, partial payment, recurrence
             |
             v
        [entering pending_approval] required_approvers -> start_approval_cycle
             |
             v
        RecordStore.save                      -- version-checked flush

    Any failure raises before RecordStore.save, so nothing is written.

Architecture position:
    Services layer.  May import records_engines (pure) and records_kernel
    (domain, services, selectors).  Thin coordinator: no comparison or
    arithmetic logic lives here.

Invariants enforced:
    - Status changes follow records_kernel.domain.lifecycle.
    - Approval sets are recomputed from all organization rules whenever a
      record enters pending_approval.
    - ``approve`` re-reads the row FOR UPDATE and saves against its version,
      so concurrent approvals never overwrite each other; the loser gets
      OptimisticLockError and retries.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from records_engines.approval import matching_rules, required_approvers
from records_engines.formula import evaluate_formulas
from records_engines.invariants import check_record_invariants
from records_engines.validation import validate_record
from records_kernel.domain.clock import Clock, SystemClock
from records_kernel.domain.lifecycle import (
    LifecycleSettings,
    apply_approval,
    check_initial_status,
    check_transition,
    return_to_draft,
    start_approval_cycle,
)
from records_kernel.domain.record import (
    FinanceRecord,
    RecordStatus,
    Recurrence,
    RecurrenceFrequency,
)
from records_kernel.domain.values import RecordType, to_date
from records_kernel.exceptions import (
    ApprovalStateChangeError,
    InvalidRecordTypeError,
    InvalidRecurrenceError,
    InvalidStatusTransitionError,
    OptimisticLockError,
    TemplateCategoryMissingError,
)
from records_kernel.logging_config import LogContext, get_logger
from records_kernel.services.approval_rule_service import ApprovalRuleService
from records_kernel.services.field_registry import FieldDefinitionRegistry
from records_kernel.services.record_store import RecordStore
from records_kernel.services.reference_data_service import ReferenceDataService

logger = get_logger("services.record_service")

# Marks "argument not given" where None is a meaningful value (clear partner)
_UNSET: Any = object()


class RecordService:
    """
    Lifecycle orchestrator for finance records.

    Flushes through RecordStore; the caller owns commit/rollback.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LifecycleSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or LifecycleSettings()
        self._registry = FieldDefinitionRegistry(session)
        self._rules = ApprovalRuleService(session)
        self._references = ReferenceDataService(session)
        self._store = RecordStore(session, self._clock)

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def get_record(self, organization_id: UUID, record_id: UUID) -> FinanceRecord:
        return self._store.load(organization_id, record_id)

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------

    def validate_and_save(
        self,
        record: FinanceRecord,
        actor_id: UUID | None = None,
    ) -> FinanceRecord:
        """
        Run the full check pipeline on ``record`` and store it.

        Status and approval sets are owned by the lifecycle: a stored record
        must carry them unchanged, and a new record must start in an initial
        status with empty approval sets.  A new ``pending_approval`` record
        starts its approval cycle here, as in create_record.  Status changes
        go through update_record, transition_status and approve.

        Raises:
            InvalidStatusTransitionError: status differs from the stored one,
                or a new record is not in an initial status.
            ApprovalStateChangeError: approval sets were altered.
            OptimisticLockError: ``record.version`` is stale.
        """
        with LogContext.bind(
            organization_id=record.organization_id, record_id=record.id, actor_id=actor_id
        ):
            self._check_lifecycle_untouched(record)
            checked = self._checked(record)
            if not record.is_persisted and record.status == RecordStatus.PENDING_APPROVAL:
                checked = self._start_cycle(checked)
            return self._store.save(checked, actor_id)

    def create_record(
        self,
        organization_id: UUID,
        record_type: RecordType | str,
        category_id: UUID,
        fields: Mapping[str, Any] | None = None,
        status: RecordStatus | str | None = None,
        partner_id: UUID | None = None,
        recurrence: Recurrence | Mapping[str, Any] | None = None,
        paid_on: date | str | None = None,
        actor_id: UUID | None = None,
    ) -> FinanceRecord:
        """
        Create a record.

        ``status`` defaults to the configured default (``approved``).
        Creating straight into ``pending_approval`` runs the approval cycle;
        ``paid`` and ``completed`` are rejected.
        """
        initial = _parse_status(status) if status is not None else self._settings.default_status
        check_initial_status(initial)

        candidate = FinanceRecord(
            organization_id=organization_id,
            record_type=_parse_record_type(record_type),
            category_id=category_id,
            fields=dict(fields or {}),
            status=initial,
            partner_id=partner_id,
            recurrence=_parse_recurrence(recurrence),
            created_by=actor_id,
            paid_on=to_date("paidOn", paid_on) if paid_on is not None else None,
        )

        with LogContext.bind(organization_id=organization_id, actor_id=actor_id):
            checked = self._checked(candidate)
            if initial == RecordStatus.PENDING_APPROVAL:
                checked = self._start_cycle(checked)
            saved = self._store.save(checked, actor_id)

            logger.info(
                "record_created",
                extra={
                    "record_id": str(saved.id),
                    "record_type": saved.record_type.value,
                    "status": saved.status.value,
                    "field_count": len(saved.fields),
                },
            )
            return saved

    def create_from_template(
        self,
        organization_id: UUID,
        template_id: UUID,
        overrides: Mapping[str, Any] | None = None,
        category_id: UUID | None = None,
        status: RecordStatus | str | None = None,
        partner_id: UUID | None = None,
        recurrence: Recurrence | Mapping[str, Any] | None = None,
        actor_id: UUID | None = None,
    ) -> FinanceRecord:
        """Create a record from a template's type, category and default
        fields, with ``overrides`` taking precedence over the defaults."""
        template = self._references.get_template(organization_id, template_id)
        category = category_id or template.category_id
        if category is None:
            raise TemplateCategoryMissingError(str(template_id))

        fields = dict(template.default_fields)
        fields.update(overrides or {})

        logger.info(
            "record_from_template",
            extra={"template_id": str(template_id), "override_count": len(overrides or {})},
        )
        return self.create_record(
            organization_id,
            template.record_type,
            category,
            fields=fields,
            status=status,
            partner_id=partner_id,
            recurrence=recurrence,
            actor_id=actor_id,
        )

    def update_record(
        self,
        organization_id: UUID,
        record_id: UUID,
        *,
        record_type: RecordType | str | None = None,
        category_id: UUID | None = None,
        partner_id: Any = _UNSET,
        fields: Mapping[str, Any] | None = None,
        recurrence: Recurrence | Mapping[str, Any] | None = None,
        status: RecordStatus | str | None = None,
        paid_on: Any = _UNSET,
        expected_version: int | None = None,
        actor_id: UUID | None = None,
    ) -> FinanceRecord:
        """
        Update a record.

        ``fields`` replaces the whole field map.  ``partner_id=None`` and
        ``paid_on=None`` clear those values.  A ``status`` different from the
        current one goes through the transition table; entering
        ``pending_approval`` recomputes the approval sets from the updated
        contents.

        Raises:
            OptimisticLockError: ``expected_version`` is stale.
            InvalidStatusTransitionError: disallowed status change.
        """
        with LogContext.bind(
            organization_id=organization_id, record_id=record_id, actor_id=actor_id
        ):
            current = self._store.load(organization_id, record_id)
            if expected_version is not None and expected_version != current.version:
                raise OptimisticLockError("FinanceRecord", str(record_id))

            changes: dict[str, Any] = {}
            if record_type is not None:
                changes["record_type"] = _parse_record_type(record_type)
            if category_id is not None:
                changes["category_id"] = category_id
            if partner_id is not _UNSET:
                changes["partner_id"] = partner_id
            if fields is not None:
                changes["fields"] = dict(fields)
            if recurrence is not None:
                changes["recurrence"] = _parse_recurrence(recurrence)
            if paid_on is not _UNSET:
                changes["paid_on"] = to_date("paidOn", paid_on) if paid_on is not None else None

            candidate = replace(current, **changes)
            target = _parse_status(status) if status is not None else current.status
            saved = self._write_transition(current, candidate, target, actor_id)

            logger.info(
                "record_updated",
                extra={
                    "changed": sorted(changes),
                    "status": saved.status.value,
                    "version": saved.version,
                },
            )
            return saved

    def transition_status(
        self,
        organization_id: UUID,
        record_id: UUID,
        new_status: RecordStatus | str,
        actor_id: UUID | None = None,
    ) -> FinanceRecord:
        """Move a record to ``new_status``.  Same status is a no-op."""
        target = _parse_status(new_status)
        with LogContext.bind(
            organization_id=organization_id, record_id=record_id, actor_id=actor_id
        ):
            current = self._store.load(organization_id, record_id)
            if target == current.status:
                logger.info("record_status_unchanged", extra={"status": target.value})
                return current
            return self._write_transition(current, current, target, actor_id)

    def approve(
        self,
        organization_id: UUID,
        record_id: UUID,
        approver_id: UUID,
    ) -> FinanceRecord:
        """
        Record ``approver_id``'s approval.

        Approving twice is a no-op.  The record advances to ``approved``
        once every required approver has approved.

        Raises:
            InvalidApprovalStateError: record is not pending approval.
            NotAuthorizedApproverError: approver is not required.
            OptimisticLockError: a concurrent write won; retry.
        """
        with LogContext.bind(
            organization_id=organization_id, record_id=record_id, actor_id=approver_id
        ):
            current = self._store.load(organization_id, record_id, for_update=True)
            approved = apply_approval(current, approver_id)
            if approved == current:
                logger.info("approval_already_recorded", extra={"approver_id": str(approver_id)})
                return current

            saved = self._store.save(self._checked(approved), approver_id)
            logger.info(
                "approval_recorded",
                extra={
                    "approver_id": str(approver_id),
                    "approvals_given": len(saved.approvals_given),
                    "approvals_required": len(saved.approvals_required),
                    "status": saved.status.value,
                },
            )
            if saved.status == RecordStatus.APPROVED:
                logger.info("record_approved", extra={"approved_by": saved.approved_by})
            return saved

    def delete_record(
        self,
        organization_id: UUID,
        record_id: UUID,
        actor_id: UUID | None = None,
    ) -> None:
        with LogContext.bind(
            organization_id=organization_id, record_id=record_id, actor_id=actor_id
        ):
            self._store.delete(organization_id, record_id)
            logger.info("record_deleted")

    # -----------------------------------------------------------------
    # Pipeline
    # -----------------------------------------------------------------

    def _check_lifecycle_untouched(self, record: FinanceRecord) -> None:
        if record.is_persisted:
            stored = self._store.load(record.organization_id, record.id)
            if stored.version != record.version:
                # RecordStore.save reports the conflict
                return
            if record.status != stored.status:
                raise InvalidStatusTransitionError(stored.status.value, record.status.value)
            expected = (stored.approvals_required, stored.approvals_given, stored.approved_by)
        else:
            check_initial_status(record.status)
            expected = (frozenset(), frozenset(), frozenset())

        if (record.approvals_required, record.approvals_given, record.approved_by) != expected:
            raise ApprovalStateChangeError(str(record.id))

    def _checked(self, record: FinanceRecord) -> FinanceRecord:
        snapshot = self._registry.snapshot(
            record.organization_id, record.category_id, record.partner_id
        )
        result = validate_record(record, snapshot)
        fields = evaluate_formulas(result.record.fields, result.definitions)
        checked = replace(result.record, fields=fields)
        check_record_invariants(
            checked,
            result.definitions,
            self._settings.total_field,
            self._settings.paid_field,
        )
        return checked

    def _start_cycle(self, record: FinanceRecord) -> FinanceRecord:
        pending = replace(record, status=RecordStatus.PENDING_APPROVAL)
        rules = self._rules.list_rules(record.organization_id)
        required = required_approvers(pending, rules)
        cycled = start_approval_cycle(pending, required)

        logger.info(
            "approval_cycle_started",
            extra={
                "matched_rules": [r.name or str(r.id) for r in matching_rules(pending, rules)],
                "approvals_required": cycled.approvals_required,
            },
        )
        if cycled.status == RecordStatus.APPROVED:
            logger.info("record_auto_approved")
        return cycled

    def _write_transition(
        self,
        current: FinanceRecord,
        candidate: FinanceRecord,
        target: RecordStatus,
        actor_id: UUID | None,
    ) -> FinanceRecord:
        if target != current.status:
            check_transition(current.status, target)

        checked = self._checked(candidate)
        if target != current.status:
            if target == RecordStatus.PENDING_APPROVAL:
                checked = self._start_cycle(checked)
            elif target == RecordStatus.DRAFT:
                checked = return_to_draft(checked)
            else:
                raise InvalidStatusTransitionError(current.status.value, target.value)
            logger.info(
                "record_status_changed",
                extra={"from_status": current.status.value, "to_status": checked.status.value},
            )
        return self._store.save(checked, actor_id)


def _parse_record_type(value: RecordType | str) -> RecordType:
    try:
        return RecordType(value)
    except ValueError:
        raise InvalidRecordTypeError(str(value)) from None


def _parse_status(value: RecordStatus | str) -> RecordStatus:
    try:
        return RecordStatus(value)
    except ValueError:
        raise InvalidStatusTransitionError(None, str(value)) from None


def _parse_recurrence(value: Recurrence | Mapping[str, Any] | None) -> Recurrence:
    """Accept a Recurrence or a mapping with camelCase or snake_case keys."""
    if value is None:
        return Recurrence()
    if isinstance(value, Recurrence):
        return value

    frequency = value.get("frequency") or RecurrenceFrequency.NONE.value
    try:
        parsed_frequency = RecurrenceFrequency(frequency)
    except ValueError:
        raise InvalidRecurrenceError(f"unknown frequency {frequency!r}") from None

    next_raw = value.get("nextOccurrence", value.get("next_occurrence"))
    end_raw = value.get("endDate", value.get("end_date"))
    return Recurrence(
        frequency=parsed_frequency,
        next_occurrence=to_date("recurrence.nextOccurrence", next_raw) if next_raw else None,
        end_date=to_date("recurrence.endDate", end_raw) if end_raw else None,
    )
