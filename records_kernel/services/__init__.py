"""Kernel services: flush-only writers over the record tables."""

from records_kernel.services.approval_rule_service import ApprovalRuleService
from records_kernel.services.field_registry import FieldDefinitionRegistry
from records_kernel.services.record_store import RecordStore
from records_kernel.services.reference_data_service import ReferenceDataService

__all__ = [
    "ApprovalRuleService",
    "FieldDefinitionRegistry",
    "RecordStore",
    "ReferenceDataService",
]
