"""
ReferenceDataService -- categories, partners and record templates.

Responsibility:
    CRUD for the collaborators finance records point at.  Categories and
    partners are referenced by records; templates seed new records.

Architecture position:
    Kernel > Services -- imperative shell.  Returns frozen DTOs.

Invariants enforced:
    - A parent category or partner category belongs to the same
      organization.
    - Deleting a category also deletes its direct sub-categories.
    - A partner referenced by any record cannot be deleted.
    - Template defaults are typed against the organization's field
      definitions when the template is stored.

Failure modes:
    - CategoryNotFoundError / PartnerNotFoundError / TemplateNotFoundError.
    - CategoryOrganizationMismatchError for a cross-organization parent.
    - InvalidPartnerTypeError / InvalidRecordTypeError for unknown enums.
    - PartnerInUseError when deleting a referenced partner.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from records_kernel.domain.record import RecordTemplate
from records_kernel.domain.references import CategoryInfo, PartnerInfo, PartnerType
from records_kernel.domain.values import (
    FieldType,
    RecordType,
    coerce_field_value,
    encode_field_map,
)
from records_kernel.exceptions import (
    CategoryNotFoundError,
    CategoryOrganizationMismatchError,
    FieldNotApplicableError,
    InvalidPartnerTypeError,
    InvalidRecordTypeError,
    PartnerInUseError,
    PartnerNotFoundError,
    TemplateNotFoundError,
    UnknownFieldError,
)
from records_kernel.logging_config import get_logger
from records_kernel.models.record import FinanceRecordModel
from records_kernel.models.reference import CategoryModel, PartnerModel
from records_kernel.models.template import RecordTemplateModel
from records_kernel.services.base import BaseService
from records_kernel.services.field_registry import FieldDefinitionRegistry

logger = get_logger("services.reference_data")


class ReferenceDataService(BaseService[CategoryModel]):
    """Categories, partners and templates of an organization."""

    # -----------------------------------------------------------------
    # Categories
    # -----------------------------------------------------------------

    def create_category(
        self,
        organization_id: UUID,
        name: str,
        description: str | None = None,
        parent_category_id: UUID | None = None,
        sub_categories: Sequence[str] = (),
        actor_id: UUID | None = None,
    ) -> CategoryInfo:
        if parent_category_id is not None:
            self._get_category_row(organization_id, parent_category_id)

        row = CategoryModel(
            organization_id=organization_id,
            name=name,
            description=description,
            parent_category_id=parent_category_id,
            sub_categories=list(sub_categories),
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "category_created",
            extra={"organization_id": str(organization_id), "category_id": str(row.id)},
        )
        return row.to_dto()

    def update_category(
        self,
        organization_id: UUID,
        category_id: UUID,
        *,
        name: str | None = None,
        description: str | None = None,
        sub_categories: Sequence[str] | None = None,
        actor_id: UUID | None = None,
    ) -> CategoryInfo:
        row = self._get_category_row(organization_id, category_id)
        if name is not None:
            row.name = name
        if description is not None:
            row.description = description
        if sub_categories is not None:
            row.sub_categories = list(sub_categories)
        row.updated_by_id = actor_id
        self.session.flush()
        return row.to_dto()

    def get_category(self, organization_id: UUID, category_id: UUID) -> CategoryInfo:
        return self._get_category_row(organization_id, category_id).to_dto()

    def list_categories(
        self,
        organization_id: UUID,
        parent_category_id: UUID | None = None,
    ) -> list[CategoryInfo]:
        """Categories of the org, optionally only the children of one parent."""
        stmt = select(CategoryModel).where(CategoryModel.organization_id == organization_id)
        if parent_category_id is not None:
            stmt = stmt.where(CategoryModel.parent_category_id == parent_category_id)
        stmt = stmt.order_by(CategoryModel.name)
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]

    def delete_category(self, organization_id: UUID, category_id: UUID) -> int:
        """Delete a category and its direct sub-categories.

        Returns the number of categories deleted.
        """
        row = self._get_category_row(organization_id, category_id)
        children = self.session.execute(
            select(CategoryModel).where(
                CategoryModel.organization_id == organization_id,
                CategoryModel.parent_category_id == category_id,
            )
        ).scalars().all()

        for child in children:
            self.session.delete(child)
        self.session.delete(row)
        self.session.flush()

        logger.info(
            "category_deleted",
            extra={
                "organization_id": str(organization_id),
                "category_id": str(category_id),
                "sub_categories_deleted": len(children),
            },
        )
        return len(children) + 1

    # -----------------------------------------------------------------
    # Partners
    # -----------------------------------------------------------------

    def create_partner(
        self,
        organization_id: UUID,
        name: str,
        partner_type: PartnerType | str,
        email: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        category_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> PartnerInfo:
        kind = _parse_partner_type(partner_type)
        if category_id is not None:
            self._get_category_row(organization_id, category_id)

        row = PartnerModel(
            organization_id=organization_id,
            name=name,
            partner_type=kind.value,
            email=email,
            phone=phone,
            address=address,
            category_id=category_id,
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "partner_created",
            extra={
                "organization_id": str(organization_id),
                "partner_id": str(row.id),
                "partner_type": kind.value,
            },
        )
        return row.to_dto()

    def update_partner(
        self,
        organization_id: UUID,
        partner_id: UUID,
        *,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        category_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> PartnerInfo:
        """Update partner details.  The partner type cannot be changed."""
        row = self._get_partner_row(organization_id, partner_id)
        if category_id is not None:
            self._get_category_row(organization_id, category_id)
            row.category_id = category_id
        if name is not None:
            row.name = name
        if email is not None:
            row.email = email
        if phone is not None:
            row.phone = phone
        if address is not None:
            row.address = address
        row.updated_by_id = actor_id
        self.session.flush()
        return row.to_dto()

    def get_partner(self, organization_id: UUID, partner_id: UUID) -> PartnerInfo:
        return self._get_partner_row(organization_id, partner_id).to_dto()

    def list_partners(
        self,
        organization_id: UUID,
        partner_type: PartnerType | str | None = None,
    ) -> list[PartnerInfo]:
        stmt = select(PartnerModel).where(PartnerModel.organization_id == organization_id)
        if partner_type is not None:
            stmt = stmt.where(
                PartnerModel.partner_type == _parse_partner_type(partner_type).value
            )
        stmt = stmt.order_by(PartnerModel.name)
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]

    def delete_partner(self, organization_id: UUID, partner_id: UUID) -> None:
        """
        Raises:
            PartnerInUseError: some record of the org references the partner.
        """
        row = self._get_partner_row(organization_id, partner_id)
        in_use = self.session.execute(
            select(func.count())
            .select_from(FinanceRecordModel)
            .where(
                FinanceRecordModel.organization_id == organization_id,
                FinanceRecordModel.partner_id == partner_id,
            )
        ).scalar_one()
        if in_use:
            logger.warning(
                "partner_delete_blocked",
                extra={"partner_id": str(partner_id), "record_count": in_use},
            )
            raise PartnerInUseError(str(partner_id), in_use)

        self.session.delete(row)
        self.session.flush()
        logger.info(
            "partner_deleted",
            extra={"organization_id": str(organization_id), "partner_id": str(partner_id)},
        )

    # -----------------------------------------------------------------
    # Templates
    # -----------------------------------------------------------------

    def create_template(
        self,
        organization_id: UUID,
        name: str,
        record_type: RecordType | str,
        default_fields: Mapping[str, Any] | None = None,
        category_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> RecordTemplate:
        """
        Store a record template.

        Default values are typed against the org's definitions; defaults for
        formula fields are dropped since formulas are always computed.

        Raises:
            UnknownFieldError / FieldNotApplicableError / FieldTypeError.
        """
        kind = _parse_record_type(record_type)
        if category_id is not None:
            self._get_category_row(organization_id, category_id)

        registry = FieldDefinitionRegistry(self.session)
        typed: dict[str, Any] = {}
        for field_name, raw in (default_fields or {}).items():
            definition = registry.get_by_name(organization_id, field_name)
            if definition is None:
                raise UnknownFieldError(field_name, str(organization_id))
            if not definition.applies_to(kind):
                raise FieldNotApplicableError(field_name, kind.value)
            if definition.field_type == FieldType.FORMULA:
                continue
            typed[field_name] = coerce_field_value(
                field_name, definition.field_type, raw, definition.options
            )

        row = RecordTemplateModel(
            organization_id=organization_id,
            name=name,
            record_type=kind.value,
            category_id=category_id,
            default_fields=encode_field_map(typed),
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "record_template_created",
            extra={"organization_id": str(organization_id), "template_id": str(row.id)},
        )
        return row.to_dto()

    def get_template(self, organization_id: UUID, template_id: UUID) -> RecordTemplate:
        row = self.session.get(RecordTemplateModel, template_id)
        if row is None or row.organization_id != organization_id:
            raise TemplateNotFoundError(str(template_id))
        return row.to_dto()

    def list_templates(self, organization_id: UUID) -> list[RecordTemplate]:
        stmt = (
            select(RecordTemplateModel)
            .where(RecordTemplateModel.organization_id == organization_id)
            .order_by(RecordTemplateModel.name)
        )
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _get_category_row(self, organization_id: UUID, category_id: UUID) -> CategoryModel:
        row = self.session.get(CategoryModel, category_id)
        if row is None:
            raise CategoryNotFoundError(str(category_id))
        if row.organization_id != organization_id:
            raise CategoryOrganizationMismatchError(str(category_id), str(organization_id))
        return row

    def _get_partner_row(self, organization_id: UUID, partner_id: UUID) -> PartnerModel:
        row = self.session.get(PartnerModel, partner_id)
        if row is None or row.organization_id != organization_id:
            raise PartnerNotFoundError(str(partner_id))
        return row


def _parse_partner_type(value: PartnerType | str) -> PartnerType:
    try:
        return PartnerType(value)
    except ValueError:
        raise InvalidPartnerTypeError(str(value)) from None


def _parse_record_type(value: RecordType | str) -> RecordType:
    try:
        return RecordType(value)
    except ValueError:
        raise InvalidRecordTypeError(str(value)) from None
