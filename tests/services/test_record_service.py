"""
Tests for RecordService create / update / transition / delete.

Covers:
- Full pipeline on create (validation, formulas, invariants)
- Nothing is written when any check fails
- Update semantics (wholesale field replacement, partner clearing)
- Status transitions and default status
- Records from templates
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from records_kernel.domain.lifecycle import LifecycleSettings
from records_kernel.domain.record import FinanceRecord, RecordStatus, RecurrenceFrequency
from records_kernel.domain.values import RecordType
from records_kernel.exceptions import (
    ApprovalStateChangeError,
    CategoryNotFoundError,
    FieldNotApplicableError,
    FieldTypeError,
    FinalAmountConfigError,
    InvalidRecordTypeError,
    InvalidRecurrenceError,
    InvalidStatusTransitionError,
    OptimisticLockError,
    PartialPaymentExceededError,
    PartnerTypeMismatchError,
    RecordNotFoundError,
    TemplateCategoryMissingError,
    UnknownFieldError,
    UnresolvedFieldError,
)
from records_kernel.selectors.record_selector import RecordSelector
from records_services.record_service import RecordService


def _count(session, organization_id) -> int:
    return RecordSelector(session).list_records(organization_id).total_records


class TestCreateRecord:

    def test_formulas_computed(self, create_expense):
        record = create_expense({"amount": 1000})
        assert record.fields["tax"] == Decimal("100")
        assert record.fields["total_amount"] == Decimal("1100")
        assert record.version == 1
        assert record.id is not None

    def test_default_status_is_approved(self, create_expense):
        assert create_expense().status == RecordStatus.APPROVED

    def test_configured_default_status(
        self, session, deterministic_clock, organization_id, category, standard_fields
    ):
        service = RecordService(
            session,
            clock=deterministic_clock,
            settings=LifecycleSettings(default_status=RecordStatus.DRAFT),
        )
        record = service.create_record(organization_id, "expense", category.id, {"amount": 1})
        assert record.status == RecordStatus.DRAFT

    def test_explicit_draft(self, create_expense):
        assert create_expense(status="draft").status == RecordStatus.DRAFT

    @pytest.mark.parametrize("status", ["paid", "completed"])
    def test_cannot_create_terminal(self, create_expense, status):
        with pytest.raises(InvalidStatusTransitionError):
            create_expense(status=status)

    def test_timestamps_from_clock(self, create_expense, deterministic_clock):
        record = create_expense()
        assert record.created_at == deterministic_clock.now()

    def test_created_by(self, create_expense, test_actor_id):
        assert create_expense(actor_id=test_actor_id).created_by == test_actor_id

    def test_recurrence_mapping(self, create_expense):
        record = create_expense(
            recurrence={"frequency": "monthly", "nextOccurrence": "2024-02-01", "endDate": "2024-12-31"}
        )
        assert record.recurrence.frequency == RecurrenceFrequency.MONTHLY
        assert record.recurrence.next_occurrence == date(2024, 2, 1)

    def test_unknown_recurrence_frequency(self, create_expense):
        with pytest.raises(InvalidRecurrenceError):
            create_expense(recurrence={"frequency": "hourly"})

    def test_recurrence_order(self, create_expense):
        with pytest.raises(InvalidRecurrenceError):
            create_expense(recurrence={"frequency": "weekly", "nextOccurrence": "2025-01-01", "endDate": "2024-01-01"})

    def test_invalid_record_type(self, create_expense):
        with pytest.raises(InvalidRecordTypeError):
            create_expense(record_type="income")


class TestCreateRejected:
    """Every rejection leaves the store unchanged."""

    def test_unknown_field(self, session, organization_id, create_expense):
        with pytest.raises(UnknownFieldError):
            create_expense({"amount": 1, "colour": "red"})
        assert _count(session, organization_id) == 0

    def test_field_not_applicable(self, session, organization_id, create_expense):
        with pytest.raises(FieldNotApplicableError):
            create_expense({"amount": 1, "billable": True})
        assert _count(session, organization_id) == 0

    def test_bool_for_number(self, session, organization_id, create_expense):
        with pytest.raises(FieldTypeError):
            create_expense({"amount": True})
        assert _count(session, organization_id) == 0

    def test_missing_formula_input(self, session, organization_id, create_expense):
        with pytest.raises(UnresolvedFieldError):
            create_expense({"notes": "no amount"})
        assert _count(session, organization_id) == 0

    def test_partial_payment_bound(self, session, organization_id, create_expense):
        with pytest.raises(PartialPaymentExceededError):
            create_expense({"amount": 100, "amount_paid": 111})
        assert _count(session, organization_id) == 0

    def test_partial_payment_within_total(self, create_expense):
        record = create_expense({"amount": 100, "amount_paid": 110})
        assert record.fields["amount_paid"] == Decimal("110")

    def test_unknown_category(self, create_expense):
        with pytest.raises(CategoryNotFoundError):
            create_expense(category_id=uuid4())

    def test_client_partner_on_expense(self, create_expense, client_partner):
        with pytest.raises(PartnerTypeMismatchError):
            create_expense(partner_id=client_partner.id)

    def test_vendor_partner_on_expense(self, create_expense, vendor):
        assert create_expense(partner_id=vendor.id).partner_id == vendor.id

    def test_no_final_amount_field(self, record_service, organization_id, category, registry):
        registry.create_definition(organization_id, "amount", "number")
        with pytest.raises(FinalAmountConfigError):
            record_service.create_record(organization_id, "expense", category.id, {"amount": 1})

    def test_two_final_amount_fields(self, create_expense, registry, organization_id):
        registry.create_definition(
            organization_id, "gross", "formula", expression="amount * 2",
            config={"isFinalAmount": True},
        )
        with pytest.raises(FinalAmountConfigError) as exc_info:
            create_expense()
        assert set(exc_info.value.field_names) == {"gross", "total_amount"}


class TestUpdateRecord:

    def test_fields_replaced_wholesale(self, record_service, organization_id, create_expense):
        record = create_expense({"amount": 100, "notes": "first"})
        updated = record_service.update_record(
            organization_id, record.id, fields={"amount": 200}
        )
        assert "notes" not in updated.fields
        assert updated.fields["total_amount"] == Decimal("220")
        assert updated.version == record.version + 1

    def test_fields_untouched_when_omitted(self, record_service, organization_id, create_expense):
        record = create_expense({"amount": 100, "notes": "keep"})
        updated = record_service.update_record(organization_id, record.id, paid_on="2024-03-01")
        assert updated.fields["notes"] == "keep"
        assert updated.paid_on == date(2024, 3, 1)

    def test_partner_cleared(self, record_service, organization_id, create_expense, vendor):
        record = create_expense(partner_id=vendor.id)
        updated = record_service.update_record(organization_id, record.id, partner_id=None)
        assert updated.partner_id is None

    def test_invalid_update_writes_nothing(self, record_service, organization_id, create_expense):
        record = create_expense({"amount": 100})
        with pytest.raises(PartialPaymentExceededError):
            record_service.update_record(
                organization_id, record.id, fields={"amount": 100, "amount_paid": 500}
            )
        assert record_service.get_record(organization_id, record.id).version == record.version

    def test_stale_expected_version(self, record_service, organization_id, create_expense):
        record = create_expense()
        with pytest.raises(OptimisticLockError):
            record_service.update_record(
                organization_id, record.id, fields={"amount": 5}, expected_version=record.version + 1
            )

    def test_change_record_type_rechecks_fields(
        self, record_service, organization_id, create_expense
    ):
        record = create_expense({"amount": 100, "due_date": "2024-05-01"})
        with pytest.raises(FieldNotApplicableError):
            record_service.update_record(organization_id, record.id, record_type="revenue")

    def test_other_organization_cannot_see_record(self, record_service, create_expense):
        record = create_expense()
        with pytest.raises(RecordNotFoundError):
            record_service.update_record(uuid4(), record.id, fields={"amount": 1})


class TestTransitionStatus:

    def test_approved_to_draft_clears_approvals(self, record_service, organization_id, create_expense):
        record = create_expense()
        draft = record_service.transition_status(organization_id, record.id, "draft")
        assert draft.status == RecordStatus.DRAFT
        assert draft.approvals_required == frozenset()

    def test_draft_to_pending_without_rules_auto_approves(
        self, record_service, organization_id, create_expense
    ):
        record = create_expense(status="draft")
        result = record_service.transition_status(organization_id, record.id, "pending_approval")
        assert result.status == RecordStatus.APPROVED

    def test_cannot_request_approved(self, record_service, organization_id, create_expense):
        record = create_expense(status="draft")
        with pytest.raises(InvalidStatusTransitionError):
            record_service.transition_status(organization_id, record.id, "approved")

    def test_cannot_request_paid(self, record_service, organization_id, create_expense):
        record = create_expense()
        with pytest.raises(InvalidStatusTransitionError):
            record_service.transition_status(organization_id, record.id, RecordStatus.PAID)

    def test_same_status_is_noop(self, record_service, organization_id, create_expense):
        record = create_expense()
        result = record_service.transition_status(organization_id, record.id, "approved")
        assert result == record

    def test_status_change_through_update(self, record_service, organization_id, create_expense):
        record = create_expense(status="draft")
        result = record_service.update_record(
            organization_id, record.id, fields={"amount": 5}, status="pending_approval"
        )
        assert result.status == RecordStatus.APPROVED
        assert result.fields["total_amount"] == Decimal("5.5")


class TestDeleteAndGet:

    def test_delete(self, record_service, organization_id, create_expense):
        record = create_expense()
        record_service.delete_record(organization_id, record.id)
        with pytest.raises(RecordNotFoundError):
            record_service.get_record(organization_id, record.id)

    def test_delete_other_org(self, record_service, create_expense):
        record = create_expense()
        with pytest.raises(RecordNotFoundError):
            record_service.delete_record(uuid4(), record.id)

    def test_get_missing(self, record_service, organization_id):
        with pytest.raises(RecordNotFoundError):
            record_service.get_record(organization_id, uuid4())


class TestValidateAndSave:

    def test_revalidates_given_record(self, record_service, organization_id, create_expense):
        record = create_expense({"amount": 10})
        saved = record_service.validate_and_save(replace(record, fields={"amount": 20}))
        assert saved.fields["tax"] == Decimal("2")
        assert saved.status == record.status

    def test_rejects_invalid(self, record_service, organization_id, create_expense):
        record = create_expense({"amount": 10})
        with pytest.raises(UnknownFieldError):
            record_service.validate_and_save(replace(record, fields={"amount": 1, "x": 1}))

    def test_status_cannot_be_set_directly(
        self, record_service, rule_service, organization_id, create_expense
    ):
        rule_service.create_rule(organization_id, {}, [uuid4()])
        pending = create_expense(status="pending_approval")

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            record_service.validate_and_save(replace(pending, status=RecordStatus.PAID))
        assert exc_info.value.from_status == "pending_approval"

        stored = record_service.get_record(organization_id, pending.id)
        assert stored.status == RecordStatus.PENDING_APPROVAL
        assert stored.version == pending.version

    def test_approval_sets_cannot_be_set_directly(
        self, record_service, rule_service, organization_id, create_expense
    ):
        rule_service.create_rule(organization_id, {}, [uuid4()])
        pending = create_expense(status="pending_approval")
        forged = replace(
            pending,
            approvals_given=pending.approvals_required,
            approved_by=pending.approvals_required,
        )
        with pytest.raises(ApprovalStateChangeError):
            record_service.validate_and_save(forged)
        assert record_service.get_record(organization_id, pending.id).approvals_given == frozenset()

    def test_new_record_in_terminal_status(self, record_service, organization_id, category, standard_fields):
        candidate = FinanceRecord(
            organization_id=organization_id,
            record_type=RecordType.EXPENSE,
            category_id=category.id,
            fields={"amount": 5},
            status=RecordStatus.PAID,
        )
        with pytest.raises(InvalidStatusTransitionError):
            record_service.validate_and_save(candidate)

    def test_new_record_with_approvals(self, record_service, organization_id, category, standard_fields):
        approver = uuid4()
        candidate = FinanceRecord(
            organization_id=organization_id,
            record_type=RecordType.EXPENSE,
            category_id=category.id,
            fields={"amount": 5},
            status=RecordStatus.PENDING_APPROVAL,
            approvals_required=frozenset({approver}),
            approvals_given=frozenset({approver}),
        )
        with pytest.raises(ApprovalStateChangeError):
            record_service.validate_and_save(candidate)

    def test_new_pending_record_starts_cycle(
        self, record_service, rule_service, organization_id, category, standard_fields
    ):
        approver = uuid4()
        rule_service.create_rule(organization_id, {}, [approver])
        saved = record_service.validate_and_save(
            FinanceRecord(
                organization_id=organization_id,
                record_type=RecordType.EXPENSE,
                category_id=category.id,
                fields={"amount": 5},
                status=RecordStatus.PENDING_APPROVAL,
            )
        )
        assert saved.status == RecordStatus.PENDING_APPROVAL
        assert saved.approvals_required == frozenset({approver})


class TestFormulaScope:

    @pytest.fixture
    def balance(self, registry, organization_id, standard_fields):
        return registry.create_definition(
            organization_id, "balance", "formula", expression="total_amount - amount_paid"
        )

    def test_optional_formula_not_carried_is_skipped(self, create_expense, balance):
        record = create_expense({"amount": 1000})
        assert "balance" not in record.fields
        assert record.fields["total_amount"] == Decimal("1100")

    def test_carried_formula_is_computed(self, create_expense, balance):
        record = create_expense({"amount": 1000, "amount_paid": 100, "balance": None})
        assert record.fields["balance"] == Decimal("1000")

    def test_carried_formula_missing_input(self, session, organization_id, create_expense, balance):
        with pytest.raises(UnresolvedFieldError):
            create_expense({"amount": 1000, "balance": 0})
        assert _count(session, organization_id) == 0

    def test_computed_formula_kept_on_revalidation(
        self, record_service, create_expense, balance
    ):
        record = create_expense({"amount": 1000, "amount_paid": 100, "balance": None})
        saved = record_service.validate_and_save(
            replace(record, fields={**record.fields, "amount_paid": 300})
        )
        assert saved.fields["balance"] == Decimal("800")


class TestCreateFromTemplate:

    def test_defaults_and_overrides(
        self, record_service, reference_data, organization_id, category, standard_fields
    ):
        template = reference_data.create_template(
            organization_id,
            "Monthly rent",
            "expense",
            default_fields={"amount": 500, "notes": "rent", "tax": 1},
            category_id=category.id,
        )
        assert "tax" not in template.default_fields

        record = record_service.create_from_template(
            organization_id, template.id, overrides={"amount": 600}
        )
        assert record.fields["amount"] == Decimal("600")
        assert record.fields["notes"] == "rent"
        assert record.fields["total_amount"] == Decimal("660")
        assert record.category_id == category.id

    def test_template_without_category(
        self, record_service, reference_data, organization_id, category, standard_fields
    ):
        template = reference_data.create_template(
            organization_id, "Ad hoc", "expense", default_fields={"amount": 1}
        )
        with pytest.raises(TemplateCategoryMissingError) as exc_info:
            record_service.create_from_template(organization_id, template.id)
        assert exc_info.value.template_id == str(template.id)
        record = record_service.create_from_template(
            organization_id, template.id, category_id=category.id
        )
        assert record.fields["amount"] == Decimal("1")


class TestLogging:

    def test_create_logs_event(self, create_expense, captured_logs, organization_id):
        create_expense()
        created = [r for r in captured_logs() if r["message"] == "record_created"]
        assert created
        assert created[-1]["organization_id"] == str(organization_id)
        assert created[-1]["status"] == "approved"
