"""
Tests for the approval workflow through RecordService.

Covers:
- Approval sets computed from organization rules on entering pending_approval
- Auto-approval when no rule matches
- Idempotent approvals and advancement once all approvers approved
- Rejection of non-required approvers and non-pending records
- Approval sets reset on re-submission and return to draft
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from records_kernel.domain.record import RecordStatus
from records_kernel.exceptions import (
    ApprovalRuleError,
    InvalidApprovalStateError,
    NotAuthorizedApproverError,
)

MANAGER = uuid4()
DIRECTOR = uuid4()
CFO = uuid4()


@pytest.fixture
def approval_rules(rule_service, organization_id):
    """Amounts over 1000 need the manager; over 5000 also the director and CFO."""
    return [
        rule_service.create_rule(
            organization_id,
            {"fields.amount": {"$gt": 1000}},
            [MANAGER],
            name="over-1k",
        ),
        rule_service.create_rule(
            organization_id,
            {"fields.amount": {"$gt": 5000}, "type": "expense"},
            [DIRECTOR, CFO],
            name="over-5k-expense",
        ),
    ]


class TestApprovalCycle:

    def test_pending_with_matching_rule(self, create_expense, approval_rules):
        record = create_expense({"amount": 1500}, status="pending_approval")
        assert record.status == RecordStatus.PENDING_APPROVAL
        assert record.approvals_required == {MANAGER}
        assert record.approvals_given == frozenset()

    def test_union_of_matching_rules(self, create_expense, approval_rules):
        record = create_expense({"amount": 6000}, status="pending_approval")
        assert record.approvals_required == {MANAGER, DIRECTOR, CFO}

    def test_auto_approved_when_nothing_matches(self, create_expense, approval_rules, captured_logs):
        record = create_expense({"amount": 10}, status="pending_approval")
        assert record.status == RecordStatus.APPROVED
        assert record.approvals_required == frozenset()
        assert any(r["message"] == "record_auto_approved" for r in captured_logs())

    def test_rules_see_computed_formulas(self, create_expense, rule_service, organization_id):
        # total_amount = amount * 1.1, so 950 -> 1045
        rule_service.create_rule(organization_id, {"fields.total_amount": {"$gte": 1000}}, [CFO])
        record = create_expense({"amount": 950}, status="pending_approval")
        assert record.approvals_required == {CFO}

    def test_rules_match_on_status(self, create_expense, rule_service, organization_id):
        rule_service.create_rule(organization_id, {"status": "pending_approval"}, [MANAGER])
        record = create_expense({"amount": 1}, status="pending_approval")
        assert record.approvals_required == {MANAGER}

    def test_created_approved_skips_rules(self, create_expense, approval_rules):
        record = create_expense({"amount": 6000})
        assert record.status == RecordStatus.APPROVED
        assert record.approvals_required == frozenset()

    def test_malformed_rule_rejected_at_creation(self, rule_service, organization_id):
        with pytest.raises(ApprovalRuleError):
            rule_service.create_rule(organization_id, {"fields.amount": {"$between": [1, 2]}}, [MANAGER])


class TestApprove:

    def test_single_approver_advances(self, record_service, organization_id, create_expense, approval_rules):
        record = create_expense({"amount": 1500}, status="pending_approval")
        approved = record_service.approve(organization_id, record.id, MANAGER)
        assert approved.status == RecordStatus.APPROVED
        assert approved.approved_by == {MANAGER}

    def test_waits_for_every_approver(self, record_service, organization_id, create_expense, approval_rules):
        record = create_expense({"amount": 6000}, status="pending_approval")

        after_manager = record_service.approve(organization_id, record.id, MANAGER)
        assert after_manager.status == RecordStatus.PENDING_APPROVAL
        after_director = record_service.approve(organization_id, record.id, DIRECTOR)
        assert after_director.status == RecordStatus.PENDING_APPROVAL
        after_cfo = record_service.approve(organization_id, record.id, CFO)

        assert after_cfo.status == RecordStatus.APPROVED
        assert after_cfo.approvals_given == {MANAGER, DIRECTOR, CFO}
        assert after_cfo.fields["total_amount"] == Decimal("6600")

    def test_idempotent(self, record_service, organization_id, create_expense, approval_rules):
        record = create_expense({"amount": 6000}, status="pending_approval")
        once = record_service.approve(organization_id, record.id, MANAGER)
        twice = record_service.approve(organization_id, record.id, MANAGER)
        assert twice.approvals_given == once.approvals_given == {MANAGER}
        assert twice.version == once.version

    def test_not_required_approver(self, record_service, organization_id, create_expense, approval_rules):
        record = create_expense({"amount": 1500}, status="pending_approval")
        with pytest.raises(NotAuthorizedApproverError):
            record_service.approve(organization_id, record.id, DIRECTOR)
        unchanged = record_service.get_record(organization_id, record.id)
        assert unchanged.approvals_given == frozenset()

    def test_not_pending(self, record_service, organization_id, create_expense, approval_rules):
        record = create_expense({"amount": 1500})
        with pytest.raises(InvalidApprovalStateError):
            record_service.approve(organization_id, record.id, MANAGER)

    def test_approval_logged(self, record_service, organization_id, create_expense, approval_rules, captured_logs):
        record = create_expense({"amount": 1500}, status="pending_approval")
        record_service.approve(organization_id, record.id, MANAGER)
        messages = [r["message"] for r in captured_logs()]
        assert "approval_recorded" in messages
        assert "record_approved" in messages


class TestResubmission:

    def test_return_to_draft_clears_sets(self, record_service, organization_id, create_expense, approval_rules):
        record = create_expense({"amount": 1500}, status="pending_approval")
        draft = record_service.transition_status(organization_id, record.id, "draft")
        assert draft.approvals_required == frozenset()
        assert draft.approvals_given == frozenset()

    def test_resubmission_recomputes_required(self, record_service, organization_id, create_expense, approval_rules):
        record = create_expense({"amount": 1500}, status="pending_approval")
        record_service.approve(organization_id, record.id, MANAGER)

        resubmitted = record_service.update_record(
            organization_id, record.id, fields={"amount": 7000}, status="pending_approval"
        )
        assert resubmitted.status == RecordStatus.PENDING_APPROVAL
        assert resubmitted.approvals_required == {MANAGER, DIRECTOR, CFO}
        assert resubmitted.approvals_given == frozenset()

    def test_editing_pending_record_keeps_sets(self, record_service, organization_id, create_expense, approval_rules):
        record = create_expense({"amount": 1500}, status="pending_approval")
        edited = record_service.update_record(
            organization_id, record.id, fields={"amount": 9000}
        )
        assert edited.status == RecordStatus.PENDING_APPROVAL
        assert edited.approvals_required == {MANAGER}
