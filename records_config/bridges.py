"""
Config -> Kernel Bridges.

Functions that turn ``RecordsSettings`` into kernel inputs.  They live in
records_config (the producer) because the kernel must NEVER import
records_config.

Usage:
    from records_config import get_active_config
    from records_config.bridges import build_lifecycle_settings, seed_organization

    settings = get_active_config()
    lifecycle = build_lifecycle_settings(settings)
    with session_scope() as session:
        seed_organization(session, organization_id, settings)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from records_config.schema import RecordsSettings
from records_kernel.domain.lifecycle import LifecycleSettings
from records_kernel.domain.record import RecordStatus
from records_kernel.logging_config import configure_logging, get_logger
from records_kernel.services.approval_rule_service import ApprovalRuleService
from records_kernel.services.field_registry import FieldDefinitionRegistry

logger = get_logger("config.bridges")


@dataclass(frozen=True)
class SeedResult:
    """What ``seed_organization`` installed and skipped."""

    created_fields: tuple[str, ...]
    skipped_fields: tuple[str, ...]
    created_rules: tuple[str, ...]


def build_lifecycle_settings(settings: RecordsSettings) -> LifecycleSettings:
    return LifecycleSettings(
        default_status=RecordStatus(settings.default_record_status),
        total_field=settings.partial_payment.total_field,
        paid_field=settings.partial_payment.paid_field,
    )


def configure_logging_from(settings: RecordsSettings) -> None:
    """Configure records logging at the configured level (idempotent)."""
    configure_logging(level=logging.getLevelName(settings.log_level))


def seed_organization(
    session: Session,
    organization_id: UUID,
    settings: RecordsSettings,
    actor_id: UUID | None = None,
) -> SeedResult:
    """
    Install the seed field definitions and approval rules in an organization.

    Definitions whose name already exists are skipped, so seeding twice
    does not fail.  Rules are always created.  Flushes only.
    """
    registry = FieldDefinitionRegistry(session)
    rules = ApprovalRuleService(session)

    created: list[str] = []
    skipped: list[str] = []
    for seed in settings.field_definitions:
        if registry.get_by_name(organization_id, seed.name) is not None:
            skipped.append(seed.name)
            continue
        registry.create_definition(
            organization_id,
            seed.name,
            seed.field_type,
            label=seed.label,
            options=seed.options,
            expression=seed.expression,
            applicable_to=seed.applicable_to,
            config=seed.config,
            actor_id=actor_id,
        )
        created.append(seed.name)

    created_rules: list[str] = []
    for rule in settings.approval_rules:
        rules.create_rule(
            organization_id,
            rule.conditions,
            [UUID(a) for a in rule.required_approvers],
            name=rule.name,
            actor_id=actor_id,
        )
        created_rules.append(rule.name)

    logger.info(
        "organization_seeded",
        extra={
            "organization_id": str(organization_id),
            "config_id": settings.config_id,
            "created_fields": created,
            "skipped_fields": skipped,
            "created_rules": created_rules,
        },
    )
    return SeedResult(tuple(created), tuple(skipped), tuple(created_rules))
