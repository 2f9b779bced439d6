"""
FieldDefinitionRegistry -- per-organization record schema.

Responsibility:
    Creates, updates, lists and deletes the typed field definitions that
    make up an organization's record schema, and builds the immutable
    ``RegistrySnapshot`` the record validator consumes.

Architecture position:
    Kernel > Services -- imperative shell.  Returns frozen
    ``FieldDefinition`` DTOs, never ORM rows.

Invariants enforced:
    - Dropdown definitions have non-empty options; formula definitions
      have an expression inside the restricted arithmetic grammar.
    - name is unique per organization and is an identifier.
    - field_type is write-once.
    - A definition is deleted only when no record of the organization has
      a value under its name.

Failure modes:
    - InvalidFieldDefinitionError on a shape violation or a type change.
    - DuplicateFieldDefinitionError on a second definition with the same name.
    - FieldDefinitionNotFoundError when the id is unknown to the organization.
    - FieldInUseError when deleting a referenced definition.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import Any
from uuid import UUID

from sqlalchemy import select

from records_kernel.domain.references import RegistrySnapshot
from records_kernel.domain.schema import (
    FieldDefinition,
    check_definition_shape,
    definitions_for,
    parse_applicability,
)
from records_kernel.domain.values import FieldType, RecordType
from records_kernel.exceptions import (
    DuplicateFieldDefinitionError,
    FieldDefinitionNotFoundError,
    FieldInUseError,
    InvalidFieldDefinitionError,
)
from records_kernel.logging_config import get_logger
from records_kernel.models.field_definition import FieldDefinitionModel
from records_kernel.models.record import FinanceRecordModel
from records_kernel.models.reference import CategoryModel, PartnerModel
from records_kernel.services.base import BaseService

logger = get_logger("services.field_registry")


class FieldDefinitionRegistry(BaseService[FieldDefinitionModel]):
    """Organization-scoped field definition store."""

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def list_definitions(self, organization_id: UUID) -> tuple[FieldDefinition, ...]:
        """All definitions of the organization, ordered by name."""
        stmt = (
            select(FieldDefinitionModel)
            .where(FieldDefinitionModel.organization_id == organization_id)
            .order_by(FieldDefinitionModel.name)
        )
        rows = self.session.execute(stmt).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def definitions_for(
        self,
        organization_id: UUID,
        record_type: RecordType,
    ) -> tuple[FieldDefinition, ...]:
        """Definitions whose applicableTo includes ``record_type`` or both."""
        return definitions_for(self.list_definitions(organization_id), record_type)

    def get_definition(self, organization_id: UUID, definition_id: UUID) -> FieldDefinition:
        return self._get_row(organization_id, definition_id).to_dto()

    def get_by_name(self, organization_id: UUID, name: str) -> FieldDefinition | None:
        row = self._find_by_name(organization_id, name)
        return row.to_dto() if row else None

    def snapshot(
        self,
        organization_id: UUID,
        category_id: UUID | None = None,
        partner_id: UUID | None = None,
    ) -> RegistrySnapshot:
        """
        Build the validator's view of the organization.

        Category and partner are fetched by id alone so that a reference
        into another organization is still visible to the validator.
        """
        category = self.session.get(CategoryModel, category_id) if category_id else None
        partner = self.session.get(PartnerModel, partner_id) if partner_id else None
        return RegistrySnapshot(
            organization_id=organization_id,
            definitions=self.list_definitions(organization_id),
            category=category.to_dto() if category else None,
            partner=partner.to_dto() if partner else None,
        )

    def usage_count(self, organization_id: UUID, name: str) -> int:
        """Number of the organization's records holding a value for ``name``."""
        stmt = select(FinanceRecordModel.fields).where(
            FinanceRecordModel.organization_id == organization_id
        )
        return sum(1 for fields in self.session.execute(stmt).scalars() if name in (fields or {}))

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------

    def create_definition(
        self,
        organization_id: UUID,
        name: str,
        field_type: FieldType | str,
        label: str = "",
        options: Sequence[str] = (),
        expression: str | None = None,
        applicable_to: Any = None,
        config: Mapping[str, Any] | None = None,
        actor_id: UUID | None = None,
    ) -> FieldDefinition:
        """
        Create a field definition.

        Raises:
            InvalidFieldDefinitionError: shape constraints violated.
            DuplicateFieldDefinitionError: name already defined in the org.
        """
        definition = FieldDefinition(
            name=name,
            field_type=_parse_field_type(name, field_type),
            label=label or "",
            options=tuple(options or ()),
            expression=expression,
            applicable_to=parse_applicability(applicable_to),
            config=dict(config or {}),
            organization_id=organization_id,
        )
        check_definition_shape(definition)

        if self._find_by_name(organization_id, name) is not None:
            raise DuplicateFieldDefinitionError(name, str(organization_id))

        row = FieldDefinitionModel(
            organization_id=organization_id,
            name=definition.name,
            label=definition.label,
            field_type=definition.field_type.value,
            options=list(definition.options),
            expression=definition.expression,
            applicable_to=definition.applicable_to.value,
            config=dict(definition.config),
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "field_definition_created",
            extra={
                "organization_id": str(organization_id),
                "field_name": name,
                "field_type": definition.field_type.value,
                "applicable_to": definition.applicable_to.value,
            },
        )
        return row.to_dto()

    def update_definition(
        self,
        organization_id: UUID,
        definition_id: UUID,
        *,
        label: str | None = None,
        options: Sequence[str] | None = None,
        expression: str | None = None,
        applicable_to: Any = None,
        config: Mapping[str, Any] | None = None,
        field_type: FieldType | str | None = None,
        actor_id: UUID | None = None,
    ) -> FieldDefinition:
        """
        Update the mutable attributes of a definition.

        ``field_type`` may be passed only if it equals the stored type.

        Raises:
            FieldDefinitionNotFoundError: unknown id for this org.
            InvalidFieldDefinitionError: type change or shape violation.
        """
        row = self._get_row(organization_id, definition_id)
        current = row.to_dto()

        if field_type is not None and _parse_field_type(row.name, field_type) != current.field_type:
            raise InvalidFieldDefinitionError(row.name, "field type cannot be changed")

        changes: dict[str, Any] = {}
        if label is not None:
            changes["label"] = label
        if options is not None:
            changes["options"] = tuple(options)
        if expression is not None:
            changes["expression"] = expression
        if applicable_to is not None:
            changes["applicable_to"] = parse_applicability(applicable_to)
        if config is not None:
            changes["config"] = dict(config)

        updated = replace(current, **changes)
        check_definition_shape(updated)

        row.label = updated.label
        row.options = list(updated.options)
        row.expression = updated.expression
        row.applicable_to = updated.applicable_to.value
        row.config = dict(updated.config)
        row.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "field_definition_updated",
            extra={
                "organization_id": str(organization_id),
                "field_name": row.name,
                "changed": sorted(changes),
            },
        )
        return row.to_dto()

    def delete_definition(self, organization_id: UUID, definition_id: UUID) -> None:
        """
        Delete a definition that no record uses.

        Raises:
            FieldDefinitionNotFoundError: unknown id for this org.
            FieldInUseError: some record of the org has a value under its name.
        """
        row = self._get_row(organization_id, definition_id)
        in_use = self.usage_count(organization_id, row.name)
        if in_use:
            logger.warning(
                "field_definition_delete_blocked",
                extra={"field_name": row.name, "record_count": in_use},
            )
            raise FieldInUseError(row.name, in_use)

        self.session.delete(row)
        self.session.flush()
        logger.info(
            "field_definition_deleted",
            extra={"organization_id": str(organization_id), "field_name": row.name},
        )

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _get_row(self, organization_id: UUID, definition_id: UUID) -> FieldDefinitionModel:
        row = self.session.get(FieldDefinitionModel, definition_id)
        if row is None or row.organization_id != organization_id:
            raise FieldDefinitionNotFoundError(str(definition_id))
        return row

    def _find_by_name(self, organization_id: UUID, name: str) -> FieldDefinitionModel | None:
        stmt = select(FieldDefinitionModel).where(
            FieldDefinitionModel.organization_id == organization_id,
            FieldDefinitionModel.name == name,
        )
        return self.session.execute(stmt).scalar_one_or_none()


def _parse_field_type(name: str, value: FieldType | str) -> FieldType:
    try:
        return FieldType(value)
    except ValueError:
        raise InvalidFieldDefinitionError(name, f"unknown field type {value!r}") from None
