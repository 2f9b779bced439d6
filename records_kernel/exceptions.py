"""
Typed Exception Hierarchy for finance records.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP adapters, batch jobs, tests) must be able to tell a bad field
name from a broken formula from an unauthorized approver without parsing
message strings. Every error therefore:
  1. Has its own class (catch by type, not message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Stores the offending name/identity as attributes (structured data)

Example:
    try:
        service.approve(org_id, record_id, approver_id)
    except NotAuthorizedApproverError as e:
        api_response(403, code=e.code, approver=str(e.approver_id))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from FinanceRecordsError:

    FinanceRecordsError (base)
    |
    +-- RecordValidationError
    |   +-- CategoryOrganizationMismatchError
    |   +-- PartnerOrganizationMismatchError
    |   +-- PartnerTypeMismatchError
    |   +-- FieldNotApplicableError
    |   +-- DropdownOptionError
    |   +-- PartialPaymentExceededError
    |   +-- InvalidRecurrenceError
    |   +-- InvalidFieldDefinitionError
    |   +-- DuplicateFieldDefinitionError
    |   +-- InvalidRecordTypeError
    |   +-- InvalidPartnerTypeError
    |
    +-- ReferenceNotFoundError
    |   +-- UnknownFieldError
    |   +-- CategoryNotFoundError
    |   +-- PartnerNotFoundError
    |   +-- RecordNotFoundError
    |   +-- FieldDefinitionNotFoundError
    |   +-- TemplateNotFoundError
    |
    +-- FieldTypeError
    |
    +-- FormulaEvaluationError
    |   +-- FormulaSyntaxError
    |   +-- UnresolvedFieldError
    |   +-- CyclicFormulaError
    |
    +-- ConfigError
    |   +-- FinalAmountConfigError
    |   +-- ApprovalRuleError
    |
    +-- ApprovalError
    |   +-- InvalidApprovalStateError
    |   +-- NotAuthorizedApproverError
    |
    +-- LifecycleError
    |   +-- InvalidStatusTransitionError
    |
    +-- InUseError
    |   +-- FieldInUseError
    |   +-- PartnerInUseError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- PersistenceError
        +-- RecordPersistenceError
        +-- UnvalidatedRecordWriteError

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Python's builtin TypeError and ReferenceError are NOT shadowed. The
   schema-level "type" failure is FieldTypeError; the "reference" family is
   ReferenceNotFoundError.

2. Inherit from Exception, never from ValueError/KeyError, so domain errors
   are catchable as one group and never confused with programming errors.

3. PersistenceError is the only opaque family: it wraps unexpected storage
   faults whose details are not meaningful to callers.
===============================================================================
"""


class FinanceRecordsError(Exception):
    """
    Base exception for all finance record errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FINANCE_RECORDS_ERROR"


# Validation exceptions


class RecordValidationError(FinanceRecordsError):
    """Base exception for category/partner/field-applicability mismatches."""

    code: str = "VALIDATION_ERROR"


class CategoryOrganizationMismatchError(RecordValidationError):
    """Category exists but belongs to a different organization."""

    code: str = "CATEGORY_ORGANIZATION_MISMATCH"

    def __init__(self, category_id: str, organization_id: str):
        self.category_id = category_id
        self.organization_id = organization_id
        super().__init__(
            f"Category {category_id} does not belong to organization {organization_id}"
        )


class PartnerOrganizationMismatchError(RecordValidationError):
    """Partner exists but belongs to a different organization."""

    code: str = "PARTNER_ORGANIZATION_MISMATCH"

    def __init__(self, partner_id: str, organization_id: str):
        self.partner_id = partner_id
        self.organization_id = organization_id
        super().__init__(
            f"Partner {partner_id} does not belong to organization {organization_id}"
        )


class PartnerTypeMismatchError(RecordValidationError):
    """Partner type does not match the record type (vendor/expense, client/revenue)."""

    code: str = "PARTNER_TYPE_MISMATCH"

    def __init__(self, partner_id: str, partner_type: str, record_type: str):
        self.partner_id = partner_id
        self.partner_type = partner_type
        self.record_type = record_type
        super().__init__(
            f"Partner type ({partner_type}) does not match record type ({record_type})"
        )


class FieldNotApplicableError(RecordValidationError):
    """Field definition exists but is not applicable to the record type."""

    code: str = "FIELD_NOT_APPLICABLE"

    def __init__(self, field_name: str, record_type: str):
        self.field_name = field_name
        self.record_type = record_type
        super().__init__(
            f'Field "{field_name}" is not applicable to {record_type} records'
        )


class DropdownOptionError(RecordValidationError):
    """Dropdown value is not one of the definition's options."""

    code: str = "DROPDOWN_OPTION_INVALID"

    def __init__(self, field_name: str, value: str, options: tuple[str, ...]):
        self.field_name = field_name
        self.value = value
        self.options = options
        super().__init__(
            f'Value {value!r} is not an option of dropdown field "{field_name}"'
        )


class PartialPaymentExceededError(RecordValidationError):
    """Paid amount exceeds the total amount."""

    code: str = "PARTIAL_PAYMENT_EXCEEDED"

    def __init__(self, total_field: str, paid_field: str, total: str, paid: str):
        self.total_field = total_field
        self.paid_field = paid_field
        self.total = total
        self.paid = paid
        super().__init__(
            f"Amount paid ({paid_field}={paid}) cannot exceed "
            f"total amount ({total_field}={total})"
        )


class InvalidRecurrenceError(RecordValidationError):
    """Recurrence settings are inconsistent."""

    code: str = "INVALID_RECURRENCE"

    def __init__(self, message: str):
        super().__init__(message)


class InvalidFieldDefinitionError(RecordValidationError):
    """Field definition violates its per-type constraints."""

    code: str = "INVALID_FIELD_DEFINITION"

    def __init__(self, field_name: str, reason: str):
        self.field_name = field_name
        self.reason = reason
        super().__init__(f'Invalid field definition "{field_name}": {reason}')


class DuplicateFieldDefinitionError(RecordValidationError):
    """Field definition name is already used within the organization."""

    code: str = "DUPLICATE_FIELD_DEFINITION"

    def __init__(self, field_name: str, organization_id: str):
        self.field_name = field_name
        self.organization_id = organization_id
        super().__init__(
            f'Field definition "{field_name}" already exists in organization '
            f"{organization_id}"
        )


class InvalidRecordTypeError(RecordValidationError):
    """Record type is not expense or revenue."""

    code: str = "INVALID_RECORD_TYPE"

    def __init__(self, record_type: str):
        self.record_type = record_type
        super().__init__(f"Invalid record type: {record_type!r}")


class InvalidPartnerTypeError(RecordValidationError):
    """Partner type is not vendor or client."""

    code: str = "INVALID_PARTNER_TYPE"

    def __init__(self, partner_type: str):
        self.partner_type = partner_type
        super().__init__(f"Invalid partner type: {partner_type!r}")


class TemplateCategoryMissingError(RecordValidationError):
    """Template has no category and the caller supplied none."""

    code: str = "TEMPLATE_CATEGORY_MISSING"

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(
            f"Template {template_id} has no category and none was given"
        )


# Reference exceptions


class ReferenceNotFoundError(FinanceRecordsError):
    """Base exception for missing referenced entities."""

    code: str = "REFERENCE_NOT_FOUND"


class UnknownFieldError(ReferenceNotFoundError):
    """Record field key does not name any definition of the organization."""

    code: str = "UNKNOWN_FIELD"

    def __init__(self, field_name: str, organization_id: str):
        self.field_name = field_name
        self.organization_id = organization_id
        super().__init__(
            f'Unknown field "{field_name}" for organization {organization_id}'
        )


class CategoryNotFoundError(ReferenceNotFoundError):
    """Category with given ID was not found."""

    code: str = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category not found: {category_id}")


class PartnerNotFoundError(ReferenceNotFoundError):
    """Partner with given ID was not found."""

    code: str = "PARTNER_NOT_FOUND"

    def __init__(self, partner_id: str):
        self.partner_id = partner_id
        super().__init__(f"Partner not found: {partner_id}")


class RecordNotFoundError(ReferenceNotFoundError):
    """Finance record with given ID was not found in the organization."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class FieldDefinitionNotFoundError(ReferenceNotFoundError):
    """Field definition with given ID was not found in the organization."""

    code: str = "FIELD_DEFINITION_NOT_FOUND"

    def __init__(self, definition_id: str):
        self.definition_id = definition_id
        super().__init__(f"Field definition not found: {definition_id}")


class TemplateNotFoundError(ReferenceNotFoundError):
    """Record template with given ID was not found in the organization."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Template not found: {template_id}")


# Type exceptions


class FieldTypeError(FinanceRecordsError):
    """A value does not have the kind its field definition requires."""

    code: str = "FIELD_TYPE_ERROR"

    def __init__(self, field_name: str, expected: str, actual: object):
        self.field_name = field_name
        self.expected = expected
        self.actual_type = type(actual).__name__
        super().__init__(
            f'Field "{field_name}" requires a {expected} value, '
            f"got {self.actual_type}"
        )


# Formula exceptions


class FormulaEvaluationError(FinanceRecordsError):
    """Base exception for formula evaluation failures."""

    code: str = "FORMULA_EVALUATION_ERROR"

    def __init__(self, field_name: str, message: str):
        self.field_name = field_name
        super().__init__(f'Error evaluating formula for field "{field_name}": {message}')


class FormulaSyntaxError(FormulaEvaluationError):
    """Formula expression is not a pure arithmetic expression."""

    code: str = "FORMULA_SYNTAX_ERROR"

    def __init__(self, field_name: str, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(field_name, f"{reason} in {expression!r}")


class UnresolvedFieldError(FormulaEvaluationError):
    """Formula references a name with no value among the record's fields."""

    code: str = "UNRESOLVED_FIELD"

    def __init__(self, field_name: str, missing_name: str):
        self.missing_name = missing_name
        super().__init__(field_name, f'unresolved field "{missing_name}"')


class CyclicFormulaError(FormulaEvaluationError):
    """Formula fields reference each other in a cycle."""

    code: str = "CYCLIC_FORMULA"

    def __init__(self, cycle: tuple[str, ...]):
        self.cycle = cycle
        super().__init__(cycle[0], "reference cycle " + " -> ".join(cycle))


# Configuration exceptions


class ConfigError(FinanceRecordsError):
    """Base exception for organization configuration faults."""

    code: str = "CONFIG_ERROR"


class FinalAmountConfigError(ConfigError):
    """Zero or several final-amount definitions apply to a record type."""

    code: str = "FINAL_AMOUNT_CONFIG"

    def __init__(self, record_type: str, field_names: tuple[str, ...]):
        self.record_type = record_type
        self.field_names = field_names
        super().__init__(
            f"Exactly one final amount field (isFinalAmount=true) is required "
            f"for {record_type} records, found {len(field_names)}"
            + (f": {', '.join(field_names)}" if field_names else "")
        )


class ApprovalRuleError(ConfigError):
    """Approval rule uses an unsupported operator or malformed condition."""

    code: str = "APPROVAL_RULE_INVALID"

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid approval condition on {path!r}: {reason}")


# Approval exceptions


class ApprovalError(FinanceRecordsError):
    """Base exception for approval workflow errors."""

    code: str = "APPROVAL_ERROR"


class InvalidApprovalStateError(ApprovalError):
    """Record is not pending approval."""

    code: str = "NOT_PENDING_APPROVAL"

    def __init__(self, record_id: str, status: str):
        self.record_id = record_id
        self.status = status
        super().__init__(f"Record {record_id} is not pending approval (status={status})")


class NotAuthorizedApproverError(ApprovalError):
    """Approver is not among the record's required approvers."""

    code: str = "NOT_AUTHORIZED_APPROVER"

    def __init__(self, record_id: str, approver_id: str):
        self.record_id = record_id
        self.approver_id = approver_id
        super().__init__(
            f"Approver {approver_id} is not required to approve record {record_id}"
        )


# Lifecycle exceptions


class LifecycleError(FinanceRecordsError):
    """Base exception for record status lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidStatusTransitionError(LifecycleError):
    """Requested status change is not a defined lifecycle transition."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, from_status: str | None, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition: {from_status or '(new)'} -> {to_status}"
        )


class ApprovalStateChangeError(LifecycleError):
    """Caller tried to set approval sets outside approve or a transition."""

    code: str = "APPROVAL_STATE_CHANGE"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(
            f"Approval sets of record {record_id} change only through approve "
            f"or a status transition"
        )


# In-use exceptions


class InUseError(FinanceRecordsError):
    """Base exception for deleting entities that records still reference."""

    code: str = "IN_USE"


class FieldInUseError(InUseError):
    """Field definition is referenced by at least one persisted record."""

    code: str = "FIELD_IN_USE"

    def __init__(self, field_name: str, record_count: int):
        self.field_name = field_name
        self.record_count = record_count
        super().__init__(
            f'Cannot delete field definition "{field_name}": '
            f"used by {record_count} record(s)"
        )


class PartnerInUseError(InUseError):
    """Partner is referenced by at least one persisted record."""

    code: str = "PARTNER_IN_USE"

    def __init__(self, partner_id: str, record_count: int):
        self.partner_id = partner_id
        self.record_count = record_count
        super().__init__(
            f"Cannot delete partner {partner_id}: associated with {record_count} record(s)"
        )


# Concurrency exceptions


class ConcurrencyError(FinanceRecordsError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Persistence exceptions


class PersistenceError(FinanceRecordsError):
    """Base exception for storage faults."""

    code: str = "PERSISTENCE_ERROR"


class RecordPersistenceError(PersistenceError):
    """Unexpected storage fault while writing a record (opaque to callers)."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Internal error while saving record {record_id}")


class UnvalidatedRecordWriteError(PersistenceError):
    """A record row reached flush without passing the validation pipeline."""

    code: str = "UNVALIDATED_RECORD_WRITE"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(
            f"Record {record_id} was modified outside the validation pipeline"
        )
