"""
Module: records_kernel.models.field_definition
Responsibility: ORM persistence for organization field definitions, the
    per-tenant schema that every record's ``fields`` map is checked against.
Architecture position: Kernel > Models.  May import from db/base.py; the
    domain DTO is imported lazily in to_dto().

Invariants enforced:
    - name is unique within an organization (uq_field_definition_org_name).
    - field_type is write-once; FieldDefinitionRegistry refuses to change it.

Failure modes:
    - IntegrityError on duplicate (organization_id, name) when the registry's
      own duplicate check is bypassed by a concurrent insert.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from records_kernel.db.base import OrganizationScoped, TrackedBase

if TYPE_CHECKING:
    from records_kernel.domain.schema import FieldDefinition


class FieldDefinitionModel(OrganizationScoped, TrackedBase):
    """
    One named, typed field of an organization's record schema.

    Guarantees:
        - options is a JSON array, non-empty for dropdown definitions.
        - expression is set for formula definitions only.
        - config is a free-form JSON object; ``isFinalAmount`` is reserved.
    """

    __tablename__ = "finance_field_definitions"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "name", name="uq_field_definition_org_name"
        ),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    field_type: Mapped[str] = mapped_column(String(20), nullable=False)
    options: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    expression: Mapped[str | None] = mapped_column(Text, nullable=True)
    applicable_to: Mapped[str] = mapped_column(
        String(10), nullable=False, default="both"
    )
    config: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<FieldDefinition {self.name} ({self.field_type})>"

    def to_dto(self) -> FieldDefinition:
        """Convert ORM model to frozen domain DTO."""
        from records_kernel.domain.schema import Applicability, FieldDefinition
        from records_kernel.domain.values import FieldType

        return FieldDefinition(
            name=self.name,
            field_type=FieldType(self.field_type),
            label=self.label or "",
            options=tuple(self.options or ()),
            expression=self.expression,
            applicable_to=Applicability(self.applicable_to),
            config=dict(self.config or {}),
            id=self.id,
            organization_id=self.organization_id,
        )
