"""
Configuration Loader (``records_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``records_config.schema`` dataclasses.  Runtime callers go through
``records_config.get_active_config()`` instead.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on kernel,
engines or services.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrong value shapes  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from records_config.schema import (
    ApprovalRuleDef,
    FieldDefinitionDef,
    PartialPaymentDef,
    RecordsSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed configuration."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_field_definition(data: dict[str, Any]) -> FieldDefinitionDef:
    """Parse a FieldDefinitionDef.  Accepts ``applicableTo`` or ``applicable_to``."""
    options = data.get("options") or ()
    if not isinstance(options, (list, tuple)):
        raise ValueError(f"field {data.get('name')!r}: options must be a list")
    config = data.get("config") or {}
    if not isinstance(config, dict):
        raise ValueError(f"field {data.get('name')!r}: config must be a mapping")

    return FieldDefinitionDef(
        name=data["name"],
        field_type=data["type"],
        label=data.get("label", ""),
        options=tuple(options),
        expression=data.get("expression"),
        applicable_to=data.get("applicableTo", data.get("applicable_to", "both")),
        config=dict(config),
    )


def parse_approval_rule(data: dict[str, Any]) -> ApprovalRuleDef:
    approvers = data.get("requiredApprovers", data.get("required_approvers"))
    if not isinstance(approvers, (list, tuple)):
        raise ValueError(f"rule {data.get('name')!r}: requiredApprovers must be a list")
    return ApprovalRuleDef(
        name=data.get("name", ""),
        conditions=data["conditions"],
        required_approvers=tuple(str(a) for a in approvers),
    )


def parse_partial_payment(data: dict[str, Any] | None) -> PartialPaymentDef:
    if not data:
        return PartialPaymentDef()
    defaults = PartialPaymentDef()
    return PartialPaymentDef(
        total_field=data.get("total_field", defaults.total_field),
        paid_field=data.get("paid_field", defaults.paid_field),
    )


def parse_settings(data: dict[str, Any]) -> RecordsSettings:
    """Parse a whole configuration document into RecordsSettings."""
    database = data.get("database") or {}
    logging_section = data.get("logging") or {}
    records = data.get("records") or {}
    seed = data.get("seed") or {}

    return RecordsSettings(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        database_url=database.get("url", "sqlite://"),
        default_record_status=records.get("default_status", "approved"),
        log_level=str(logging_section.get("level", "INFO")).upper(),
        partial_payment=parse_partial_payment(records.get("partial_payment")),
        field_definitions=tuple(
            parse_field_definition(d) for d in seed.get("field_definitions") or ()
        ),
        approval_rules=tuple(parse_approval_rule(r) for r in seed.get("approval_rules") or ()),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> RecordsSettings:
    """Load and parse ``path``.  Does not validate."""
    return parse_settings(load_yaml_file(path))
