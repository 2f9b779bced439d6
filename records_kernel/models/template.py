"""
Module: records_kernel.models.template
Responsibility: ORM persistence for record templates (named per-type
    defaults used by RecordService.create_from_template).
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from records_kernel.db.base import OrganizationScoped, TrackedBase, UUIDString

if TYPE_CHECKING:
    from records_kernel.domain.record import RecordTemplate


class RecordTemplateModel(OrganizationScoped, TrackedBase):
    """Template of default fields; default_fields uses the tagged field form."""

    __tablename__ = "finance_record_templates"

    __table_args__ = (
        Index("idx_record_template_org_name", "organization_id", "name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    record_type: Mapped[str] = mapped_column(String(10), nullable=False)
    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    default_fields: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    def to_dto(self) -> RecordTemplate:
        from records_kernel.domain.record import RecordTemplate
        from records_kernel.domain.values import RecordType, decode_field_map

        return RecordTemplate(
            organization_id=self.organization_id,
            name=self.name,
            record_type=RecordType(self.record_type),
            category_id=self.category_id,
            default_fields=decode_field_map(self.default_fields),
            id=self.id,
        )
