"""
Pytest fixtures for the finance records test suite.

Provides:
- An in-memory SQLite engine and session per test
- Organization, category, partner and field definition fixtures
- A RecordService wired to a deterministic clock
- Captured structured logs
"""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from records_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from records_kernel.domain.clock import DeterministicClock
from records_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from records_kernel.services.approval_rule_service import ApprovalRuleService
from records_kernel.services.field_registry import FieldDefinitionRegistry
from records_kernel.services.reference_data_service import ReferenceDataService
from records_services.record_service import RecordService

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture records_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, record_service):
            record_service.create_record(...)
            logs = captured_logs()
            assert any(r["message"] == "record_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("records_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database for each test."""
    eng = init_engine_from_url("sqlite://")
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine):
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def registry(session):
    return FieldDefinitionRegistry(session)


@pytest.fixture
def reference_data(session):
    return ReferenceDataService(session)


@pytest.fixture
def rule_service(session):
    return ApprovalRuleService(session)


@pytest.fixture
def record_service(session, deterministic_clock):
    return RecordService(session, clock=deterministic_clock)


# =============================================================================
# Organization data
# =============================================================================


@pytest.fixture
def organization_id():
    return uuid4()


@pytest.fixture
def category(reference_data, organization_id, test_actor_id):
    return reference_data.create_category(
        organization_id, "Office", description="Office costs", actor_id=test_actor_id
    )


@pytest.fixture
def vendor(reference_data, organization_id):
    return reference_data.create_partner(
        organization_id, "Paper Supplies Ltd", "vendor", email="sales@paper.example"
    )


@pytest.fixture
def client_partner(reference_data, organization_id):
    return reference_data.create_partner(organization_id, "Acme Corp", "client")


@pytest.fixture
def standard_fields(registry, organization_id, test_actor_id):
    """
    The field set most tests use:

        amount        number
        tax           formula  amount * 0.1
        total_amount  formula  amount + tax   (final amount)
        amount_paid   number
        notes         string
        method        dropdown cash | card
        due_date      date     (expense only)
        billable      boolean  (revenue only)
    """
    specs = [
        dict(name="amount", field_type="number"),
        dict(name="tax", field_type="formula", expression="amount * 0.1"),
        dict(
            name="total_amount",
            field_type="formula",
            expression="amount + tax",
            config={"isFinalAmount": True},
        ),
        dict(name="amount_paid", field_type="number"),
        dict(name="notes", field_type="string"),
        dict(name="method", field_type="dropdown", options=["cash", "card"]),
        dict(name="due_date", field_type="date", applicable_to="expense"),
        dict(name="billable", field_type="boolean", applicable_to="revenue"),
    ]
    return {
        spec["name"]: registry.create_definition(organization_id, actor_id=test_actor_id, **spec)
        for spec in specs
    }


@pytest.fixture
def create_expense(record_service, organization_id, category, standard_fields, deterministic_clock):
    """Factory creating an expense record; each call advances the clock."""

    def _create(fields=None, **kwargs):
        deterministic_clock.tick()
        return record_service.create_record(
            organization_id,
            kwargs.pop("record_type", "expense"),
            kwargs.pop("category_id", category.id),
            fields={"amount": 1000} if fields is None else fields,
            **kwargs,
        )

    return _create
