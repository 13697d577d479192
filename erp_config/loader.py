"""
YAML loading and parsing for ``erp_config``.

Responsibility:
    Read a YAML file, layer environment overrides on top, and parse the
    result into a frozen ``ReconciliationConfig``.  Only
    ``erp_config.get_active_config`` calls into this module at runtime.

Failure modes:
    * Missing file  -> ``FileNotFoundError`` propagates.
    * Malformed YAML  -> ``yaml.YAMLError`` propagates.
    * Missing or invalid keys  -> ``ValueError`` with the key path.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from erp_config.schema import (
    DatabaseSettings,
    LegacyMarkerSettings,
    ReconciliationConfig,
    RetrySettings,
)

ENV_DATABASE_URL = "ERP_DATABASE_URL"
ENV_LOG_LEVEL = "ERP_LOG_LEVEL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    """Return a copy of ``data`` with ERP_* environment values applied."""
    merged = copy.deepcopy(data)
    if environ.get(ENV_DATABASE_URL):
        merged.setdefault("database", {})["url"] = environ[ENV_DATABASE_URL]
    if environ.get(ENV_LOG_LEVEL):
        merged.setdefault("logging", {})["level"] = environ[ENV_LOG_LEVEL]
    return merged


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _prefixes(section: dict[str, Any], key: str) -> tuple[str, ...]:
    raw = section.get(key)
    if isinstance(raw, str):
        raw = [raw]
    if not raw:
        raise ValueError(f"rental.{key} must list at least one prefix")
    return tuple(str(p) for p in raw)


def parse_config(data: dict[str, Any]) -> ReconciliationConfig:
    database = _section(data, "database")
    if not database.get("url"):
        raise ValueError("database.url is required")
    rental = _section(data, "rental")
    retry = _section(data, "retry")
    logging_section = _section(data, "logging")

    return ReconciliationConfig(
        config_id=str(data.get("config_id", "erp-reconciliation")),
        version=int(data.get("version", 1)),
        database=DatabaseSettings(
            url=str(database["url"]),
            echo=bool(database.get("echo", False)),
        ),
        log_level=str(logging_section.get("level", "INFO")).upper(),
        legacy_markers=LegacyMarkerSettings(
            start_prefixes=_prefixes(rental, "legacy_start_prefixes"),
            return_prefixes=_prefixes(rental, "legacy_return_prefixes"),
        ),
        retry=RetrySettings(
            attempts=int(retry.get("attempts", 3)),
            backoff_seconds=float(retry.get("backoff_seconds", 0.2)),
        ),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 of the canonical JSON serialization.

    Identical ``data`` always produces identical checksums, regardless of
    key order.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
