"""
Module: records_kernel.models.approval_rule
Responsibility: ORM persistence for tenant approval rules.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - conditions is a JSON object of dotted path -> comparison spec.
    - required_approvers is a JSON array of approver UUID strings.
    - Rules are created out-of-band (ApprovalRuleService, config seeding)
      and only read by the record lifecycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from records_kernel.db.base import OrganizationScoped, TrackedBase

if TYPE_CHECKING:
    from records_kernel.domain.approval import ApprovalRule


class ApprovalRuleModel(OrganizationScoped, TrackedBase):
    """Persistent approval rule of an organization."""

    __tablename__ = "finance_approval_rules"

    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    conditions: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    required_approvers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<ApprovalRule {self.name or self.id}>"

    def to_dto(self) -> ApprovalRule:
        from records_kernel.domain.approval import ApprovalRule

        return ApprovalRule(
            organization_id=self.organization_id,
            conditions=dict(self.conditions or {}),
            required_approvers=frozenset(UUID(a) for a in self.required_approvers or ()),
            name=self.name or "",
            id=self.id,
        )
