"""
Module: records_kernel.models.reference
Responsibility: ORM persistence for the collaborators a record points at:
    finance categories and partners (vendors and clients).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Both tables are organization scoped.  Records reference them by id
      without a foreign key; RecordValidator checks existence and
      organization at write time.
    - partner_type is 'vendor' or 'client' (ck_partner_type).
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from records_kernel.db.base import OrganizationScoped, TrackedBase, UUIDString

if TYPE_CHECKING:
    from records_kernel.domain.references import CategoryInfo, PartnerInfo


class CategoryModel(OrganizationScoped, TrackedBase):
    """Finance category, optionally nested under a parent category."""

    __tablename__ = "finance_categories"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True, index=True
    )
    sub_categories: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Category {self.name}>"

    def to_dto(self) -> CategoryInfo:
        from records_kernel.domain.references import CategoryInfo

        return CategoryInfo(
            id=self.id,
            organization_id=self.organization_id,
            name=self.name,
            description=self.description,
            parent_category_id=self.parent_category_id,
            sub_categories=tuple(self.sub_categories or ()),
        )


class PartnerModel(OrganizationScoped, TrackedBase):
    """Vendor or client an organization records expenses or revenue against."""

    __tablename__ = "finance_partners"

    __table_args__ = (
        CheckConstraint(
            "partner_type IN ('vendor', 'client')", name="ck_partner_type"
        ),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    partner_type: Mapped[str] = mapped_column(String(10), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<Partner {self.name} ({self.partner_type})>"

    def to_dto(self) -> PartnerInfo:
        from records_kernel.domain.references import (
            ContactInfo,
            PartnerInfo,
            PartnerType,
        )

        return PartnerInfo(
            id=self.id,
            organization_id=self.organization_id,
            name=self.name,
            partner_type=PartnerType(self.partner_type),
            contact=ContactInfo(email=self.email, phone=self.phone, address=self.address),
            category_id=self.category_id,
        )
