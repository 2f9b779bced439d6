"""ORM models for the finance records kernel."""

from records_kernel.models.approval_rule import ApprovalRuleModel
from records_kernel.models.field_definition import FieldDefinitionModel
from records_kernel.models.record import FinanceRecordModel
from records_kernel.models.reference import CategoryModel, PartnerModel
from records_kernel.models.template import RecordTemplateModel

__all__ = [
    "ApprovalRuleModel",
    "CategoryModel",
    "FieldDefinitionModel",
    "FinanceRecordModel",
    "PartnerModel",
    "RecordTemplateModel",
]
