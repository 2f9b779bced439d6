"""
ApprovalRuleService -- out-of-band management of tenant approval rules.

Responsibility:
    Stores and lists the condition rules the approval rule engine evaluates
    whenever a record enters ``pending_approval``.

Architecture position:
    Kernel > Services -- imperative shell.  Returns frozen ``ApprovalRule``
    DTOs.

Invariants enforced:
    - Conditions are checked for shape and operator support before they
      are stored, so a bad rule fails here instead of on some later record.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import select

from records_kernel.domain.approval import ApprovalRule, check_conditions
from records_kernel.logging_config import get_logger
from records_kernel.models.approval_rule import ApprovalRuleModel
from records_kernel.services.base import BaseService

logger = get_logger("services.approval_rules")


class ApprovalRuleService(BaseService[ApprovalRuleModel]):

    def create_rule(
        self,
        organization_id: UUID,
        conditions: Mapping[str, Any],
        required_approvers: Iterable[UUID],
        name: str = "",
        actor_id: UUID | None = None,
    ) -> ApprovalRule:
        """
        Raises:
            ApprovalRuleError: malformed conditions.
        """
        check_conditions(conditions)
        approvers = sorted({str(a) for a in required_approvers})

        row = ApprovalRuleModel(
            organization_id=organization_id,
            name=name,
            conditions=dict(conditions),
            required_approvers=approvers,
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "approval_rule_created",
            extra={
                "organization_id": str(organization_id),
                "rule_id": str(row.id),
                "rule_name": name,
                "condition_paths": sorted(conditions),
                "approver_count": len(approvers),
            },
        )
        return row.to_dto()

    def list_rules(self, organization_id: UUID) -> tuple[ApprovalRule, ...]:
        stmt = (
            select(ApprovalRuleModel)
            .where(ApprovalRuleModel.organization_id == organization_id)
            .order_by(ApprovalRuleModel.name, ApprovalRuleModel.id)
        )
        return tuple(row.to_dto() for row in self.session.execute(stmt).scalars())

    def delete_rule(self, organization_id: UUID, rule_id: UUID) -> bool:
        """Returns False when the rule does not exist in the organization."""
        row = self.session.get(ApprovalRuleModel, rule_id)
        if row is None or row.organization_id != organization_id:
            return False
        self.session.delete(row)
        self.session.flush()
        logger.info(
            "approval_rule_deleted",
            extra={"organization_id": str(organization_id), "rule_id": str(rule_id)},
        )
        return True
