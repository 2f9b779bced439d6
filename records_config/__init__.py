"""
records_config -- single public entrypoint for records configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``RecordsSettings``.  YAML
    loading and validation are internal to this package.

Architecture position:
    Configuration -- sits above ``records_kernel`` and beside
    ``records_services``.  The kernel MUST NEVER import ``records_config``;
    ``records_config.bridges`` translates settings into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- configuration file does not exist.
    - ``ValueError`` -- parse or validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``RECORDS_CONFIG_TRACE`` log entry with the config id, version,
    checksum and seed counts.
"""

from __future__ import annotations

from pathlib import Path

from records_config.loader import load_settings
from records_config.schema import RecordsSettings
from records_config.validator import validate_settings
from records_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> RecordsSettings:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned settings have passed validation.
        - A ``RECORDS_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Args:
        path: Configuration file.  Defaults to records_config/defaults.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If parsing or validation fails.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    settings = load_settings(config_path)

    validation = validate_settings(settings)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"detail": warning})

    _logger.info(
        "RECORDS_CONFIG_TRACE",
        extra={
            "trace_type": "RECORDS_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "default_record_status": settings.default_record_status,
            "field_definition_count": len(settings.field_definitions),
            "approval_rule_count": len(settings.approval_rules),
        },
    )
    return settings


__all__ = ["RecordsSettings", "get_active_config"]
