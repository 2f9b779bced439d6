"""
Tests for categories, partners and record templates.
"""

from uuid import uuid4

import pytest

from records_kernel.domain.references import PartnerType
from records_kernel.exceptions import (
    CategoryNotFoundError,
    CategoryOrganizationMismatchError,
    FieldNotApplicableError,
    InvalidPartnerTypeError,
    PartnerInUseError,
    PartnerNotFoundError,
    TemplateNotFoundError,
    UnknownFieldError,
)


class TestCategories:

    def test_create_and_get(self, reference_data, organization_id):
        created = reference_data.create_category(
            organization_id, "Utilities", sub_categories=["power", "water"]
        )
        fetched = reference_data.get_category(organization_id, created.id)
        assert fetched == created
        assert fetched.sub_categories == ("power", "water")

    def test_child_of_parent(self, reference_data, organization_id, category):
        child = reference_data.create_category(
            organization_id, "Paper", parent_category_id=category.id
        )
        children = reference_data.list_categories(organization_id, parent_category_id=category.id)
        assert [c.id for c in children] == [child.id]

    def test_parent_in_other_org(self, reference_data, category):
        with pytest.raises(CategoryOrganizationMismatchError):
            reference_data.create_category(uuid4(), "Paper", parent_category_id=category.id)

    def test_delete_removes_children(self, reference_data, organization_id, category):
        child = reference_data.create_category(
            organization_id, "Paper", parent_category_id=category.id
        )
        assert reference_data.delete_category(organization_id, category.id) == 2
        with pytest.raises(CategoryNotFoundError):
            reference_data.get_category(organization_id, child.id)

    def test_update(self, reference_data, organization_id, category):
        updated = reference_data.update_category(organization_id, category.id, name="Office supplies")
        assert updated.name == "Office supplies"
        assert updated.description == category.description


class TestPartners:

    def test_create(self, vendor):
        assert vendor.partner_type == PartnerType.VENDOR
        assert vendor.contact.email == "sales@paper.example"

    def test_invalid_type(self, reference_data, organization_id):
        with pytest.raises(InvalidPartnerTypeError):
            reference_data.create_partner(organization_id, "X", "supplier")

    def test_list_by_type(self, reference_data, organization_id, vendor, client_partner):
        vendors = reference_data.list_partners(organization_id, partner_type="vendor")
        assert [p.id for p in vendors] == [vendor.id]

    def test_other_org_not_found(self, reference_data, vendor):
        with pytest.raises(PartnerNotFoundError):
            reference_data.get_partner(uuid4(), vendor.id)

    def test_delete_unused(self, reference_data, organization_id, vendor):
        reference_data.delete_partner(organization_id, vendor.id)
        with pytest.raises(PartnerNotFoundError):
            reference_data.get_partner(organization_id, vendor.id)

    def test_delete_in_use(self, reference_data, organization_id, vendor, create_expense):
        create_expense(partner_id=vendor.id)
        with pytest.raises(PartnerInUseError) as exc_info:
            reference_data.delete_partner(organization_id, vendor.id)
        assert exc_info.value.record_count == 1

    def test_update_contact(self, reference_data, organization_id, vendor):
        updated = reference_data.update_partner(organization_id, vendor.id, phone="555-0100")
        assert updated.contact.phone == "555-0100"
        assert updated.partner_type == PartnerType.VENDOR


class TestTemplates:

    def test_unknown_default_field(self, reference_data, organization_id, standard_fields):
        with pytest.raises(UnknownFieldError):
            reference_data.create_template(
                organization_id, "T", "expense", default_fields={"colour": "red"}
            )

    def test_inapplicable_default_field(self, reference_data, organization_id, standard_fields):
        with pytest.raises(FieldNotApplicableError):
            reference_data.create_template(
                organization_id, "T", "revenue", default_fields={"due_date": "2024-01-01"}
            )

    def test_list_and_get(self, reference_data, organization_id, standard_fields):
        template = reference_data.create_template(
            organization_id, "Rent", "expense", default_fields={"notes": "rent"}
        )
        assert reference_data.list_templates(organization_id) == [template]
        assert reference_data.get_template(organization_id, template.id) == template

    def test_missing(self, reference_data, organization_id):
        with pytest.raises(TemplateNotFoundError):
            reference_data.get_template(organization_id, uuid4())
