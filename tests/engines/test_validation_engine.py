"""
Tests for schema gating of a record against its registry snapshot.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from records_engines.validation import resolve_definitions, validate_record
from records_kernel.domain.record import FinanceRecord
from records_kernel.domain.references import (
    CategoryInfo,
    PartnerInfo,
    PartnerType,
    RegistrySnapshot,
)
from records_kernel.domain.schema import Applicability, FieldDefinition
from records_kernel.domain.values import FieldType, RecordType
from records_kernel.exceptions import (
    CategoryNotFoundError,
    CategoryOrganizationMismatchError,
    DropdownOptionError,
    FieldNotApplicableError,
    FieldTypeError,
    PartnerNotFoundError,
    PartnerOrganizationMismatchError,
    PartnerTypeMismatchError,
    UnknownFieldError,
)

ORG = uuid4()
OTHER_ORG = uuid4()

DEFINITIONS = (
    FieldDefinition("amount", FieldType.NUMBER),
    FieldDefinition("tax", FieldType.FORMULA, expression="amount * 0.1"),
    FieldDefinition("method", FieldType.DROPDOWN, options=("cash", "card")),
    FieldDefinition("due_date", FieldType.DATE, applicable_to=Applicability.EXPENSE),
    FieldDefinition("billable", FieldType.BOOLEAN, applicable_to=Applicability.REVENUE),
)


@pytest.fixture
def category():
    return CategoryInfo(id=uuid4(), organization_id=ORG, name="Office")


@pytest.fixture
def vendor():
    return PartnerInfo(id=uuid4(), organization_id=ORG, name="V", partner_type=PartnerType.VENDOR)


def make_record(category, fields=None, **kwargs) -> FinanceRecord:
    return FinanceRecord(
        organization_id=ORG,
        record_type=kwargs.pop("record_type", RecordType.EXPENSE),
        category_id=category.id,
        fields=fields or {},
        **kwargs,
    )


def snapshot(category=None, partner=None) -> RegistrySnapshot:
    return RegistrySnapshot(ORG, DEFINITIONS, category=category, partner=partner)


class TestFieldGating:

    def test_values_are_typed(self, category):
        record = make_record(category, {"amount": 10, "due_date": "2024-02-01", "method": "card"})
        result = validate_record(record, snapshot(category))
        assert result.record.fields == {
            "amount": Decimal("10"),
            "due_date": date(2024, 2, 1),
            "method": "card",
        }

    def test_unknown_field(self, category):
        with pytest.raises(UnknownFieldError) as exc_info:
            validate_record(make_record(category, {"colour": "red"}), snapshot(category))
        assert exc_info.value.field_name == "colour"

    def test_field_not_applicable(self, category):
        with pytest.raises(FieldNotApplicableError):
            validate_record(make_record(category, {"billable": True}), snapshot(category))

    def test_wrong_kind(self, category):
        with pytest.raises(FieldTypeError):
            validate_record(make_record(category, {"amount": "ten"}), snapshot(category))

    def test_dropdown_option(self, category):
        with pytest.raises(DropdownOptionError):
            validate_record(make_record(category, {"method": "cheque"}), snapshot(category))

    def test_formula_input_discarded(self, category):
        record = make_record(category, {"amount": 10, "tax": 999})
        result = validate_record(record, snapshot(category))
        assert "tax" not in result.record.fields

    def test_none_clears_value(self, category):
        result = validate_record(make_record(category, {"method": None}), snapshot(category))
        assert result.record.fields == {}

    def test_formula_not_carried_left_out(self, category):
        result = validate_record(make_record(category), snapshot(category))
        assert [d.name for d in result.definitions] == ["amount", "method", "due_date"]

    def test_carried_formula_resolved(self, category):
        result = validate_record(make_record(category, {"amount": 1, "tax": None}), snapshot(category))
        assert [d.name for d in result.definitions] == ["amount", "tax", "method", "due_date"]


class TestResolveDefinitions:

    APPLICABLE = (
        FieldDefinition("amount", FieldType.NUMBER),
        FieldDefinition("tax", FieldType.FORMULA, expression="amount * 0.1"),
        FieldDefinition("fee", FieldType.FORMULA, expression="2"),
        FieldDefinition(
            "total", FieldType.FORMULA, expression="amount + tax + fee",
            config={"isFinalAmount": True},
        ),
        FieldDefinition("balance", FieldType.FORMULA, expression="total - paid"),
        FieldDefinition("paid", FieldType.NUMBER),
    )

    def test_final_amount_pulls_in_its_formulas(self):
        names = [d.name for d in resolve_definitions(self.APPLICABLE, ["amount"])]
        assert names == ["amount", "tax", "fee", "total", "paid"]

    def test_carried_formula_pulls_in_chain(self):
        names = [d.name for d in resolve_definitions(self.APPLICABLE, ["balance"])]
        assert names == ["amount", "tax", "fee", "total", "balance", "paid"]

    def test_unparseable_formula_kept_in_scope(self):
        broken = (FieldDefinition("bad", FieldType.FORMULA, expression="amount +"),)
        assert resolve_definitions(broken, ["bad"]) == broken


class TestReferences:

    def test_missing_category(self, category):
        with pytest.raises(CategoryNotFoundError):
            validate_record(make_record(category), snapshot())

    def test_category_of_other_org(self):
        foreign = CategoryInfo(id=uuid4(), organization_id=OTHER_ORG, name="X")
        with pytest.raises(CategoryOrganizationMismatchError):
            validate_record(make_record(foreign), snapshot(foreign))

    def test_missing_partner(self, category):
        record = make_record(category, partner_id=uuid4())
        with pytest.raises(PartnerNotFoundError):
            validate_record(record, snapshot(category))

    def test_partner_of_other_org(self, category):
        partner = PartnerInfo(uuid4(), OTHER_ORG, "V", PartnerType.VENDOR)
        record = make_record(category, partner_id=partner.id)
        with pytest.raises(PartnerOrganizationMismatchError):
            validate_record(record, snapshot(category, partner))

    def test_client_on_expense(self, category):
        client = PartnerInfo(uuid4(), ORG, "C", PartnerType.CLIENT)
        record = make_record(category, partner_id=client.id)
        with pytest.raises(PartnerTypeMismatchError) as exc_info:
            validate_record(record, snapshot(category, client))
        assert exc_info.value.record_type == "expense"

    def test_vendor_on_expense(self, category, vendor):
        record = make_record(category, partner_id=vendor.id)
        assert validate_record(record, snapshot(category, vendor)).record.partner_id == vendor.id

    def test_references_checked_before_fields(self):
        with pytest.raises(CategoryNotFoundError):
            validate_record(make_record(CategoryInfo(uuid4(), ORG, "x"), {"colour": 1}), snapshot())
