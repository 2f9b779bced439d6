"""
RecordsSettings schema.

The typed form of a records configuration file.  YAML is parsed into these
types by the loader, checked by the validator, and applied to the kernel by
the bridges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldDefinitionDef:
    """A field definition to install in an organization."""

    name: str
    field_type: str
    label: str = ""
    options: tuple[str, ...] = ()
    expression: str | None = None
    applicable_to: str = "both"
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ApprovalRuleDef:
    """An approval rule to install in an organization."""

    name: str
    conditions: dict[str, Any]
    required_approvers: tuple[str, ...]  # UUID strings


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PartialPaymentDef:
    """Names of the fields bound by the partial-payment invariant."""

    total_field: str = "total_amount"
    paid_field: str = "amount_paid"


@dataclass(frozen=True)
class RecordsSettings:
    """Complete records configuration."""

    config_id: str
    version: int
    database_url: str = "sqlite://"
    default_record_status: str = "approved"
    log_level: str = "INFO"
    partial_payment: PartialPaymentDef = field(default_factory=PartialPaymentDef)
    field_definitions: tuple[FieldDefinitionDef, ...] = ()
    approval_rules: tuple[ApprovalRuleDef, ...] = ()
    checksum: str = ""
