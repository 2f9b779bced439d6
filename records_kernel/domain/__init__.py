"""
Pure domain layer.

Value objects and pure functions with NO dependencies on the ORM, the
database or I/O (``SystemClock`` aside).  All domain objects are
immutable.
"""

from records_kernel.domain.approval import ApprovalRule
from records_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from records_kernel.domain.lifecycle import LifecycleSettings
from records_kernel.domain.record import (
    FinanceRecord,
    RecordStatus,
    RecordTemplate,
    Recurrence,
    RecurrenceFrequency,
)
from records_kernel.domain.references import (
    CategoryInfo,
    ContactInfo,
    PartnerInfo,
    PartnerType,
    RegistrySnapshot,
)
from records_kernel.domain.schema import Applicability, FieldDefinition
from records_kernel.domain.values import FieldType, FieldValue, RecordType

__all__ = [
    "Applicability",
    "ApprovalRule",
    "CategoryInfo",
    "Clock",
    "ContactInfo",
    "DeterministicClock",
    "FieldDefinition",
    "FieldType",
    "FieldValue",
    "FinanceRecord",
    "LifecycleSettings",
    "PartnerInfo",
    "PartnerType",
    "RecordStatus",
    "RecordTemplate",
    "RecordType",
    "Recurrence",
    "RecurrenceFrequency",
    "RegistrySnapshot",
    "SystemClock",
]
