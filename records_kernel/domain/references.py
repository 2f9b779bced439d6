"""
Reference data snapshot (``records_kernel.domain.references``).

Responsibility
--------------
Frozen views of the collaborators a record points at (category, partner)
and the ``RegistrySnapshot`` the validator consumes: the organization's
field definitions plus whichever category and partner the record names.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Built by
``FieldDefinitionRegistry.snapshot`` and ``ReferenceDataService``.

Invariants enforced
-------------------
* Category and partner are looked up by id only; their
  ``organization_id`` is carried so the validator can tell a missing
  reference from a reference into another organization.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from records_kernel.domain.schema import FieldDefinition, definitions_for
from records_kernel.domain.values import RecordType


class PartnerType(str, Enum):
    VENDOR = "vendor"
    CLIENT = "client"


# Vendors supply expenses; clients produce revenue
EXPECTED_PARTNER_TYPE: dict[RecordType, PartnerType] = {
    RecordType.EXPENSE: PartnerType.VENDOR,
    RecordType.REVENUE: PartnerType.CLIENT,
}


@dataclass(frozen=True)
class CategoryInfo:
    id: UUID
    organization_id: UUID
    name: str
    description: str | None = None
    parent_category_id: UUID | None = None
    sub_categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class ContactInfo:
    email: str | None = None
    phone: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class PartnerInfo:
    id: UUID
    organization_id: UUID
    name: str
    partner_type: PartnerType
    contact: ContactInfo = ContactInfo()
    category_id: UUID | None = None


@dataclass(frozen=True)
class RegistrySnapshot:
    """Everything the validator needs to check one record.

    ``category`` / ``partner`` are None when the referenced id does not
    exist at all.
    """

    organization_id: UUID
    definitions: tuple[FieldDefinition, ...]
    category: CategoryInfo | None = None
    partner: PartnerInfo | None = None

    def definition_named(self, name: str) -> FieldDefinition | None:
        for definition in self.definitions:
            if definition.name == name:
                return definition
        return None

    def applicable(self, record_type: RecordType) -> tuple[FieldDefinition, ...]:
        return definitions_for(self.definitions, record_type)
