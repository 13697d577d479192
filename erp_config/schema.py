"""
Configuration schema -- frozen dataclasses produced by ``erp_config.loader``.

Every field has already been validated by the time a ``ReconciliationConfig``
exists; consumers never re-check values.
"""

from __future__ import annotations

from dataclasses import dataclass

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False


@dataclass(frozen=True)
class RetrySettings:
    """Bounded retry for transient store failures.  Conflicts never retry."""

    attempts: int = 3
    backoff_seconds: float = 0.2

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError(f"retry.attempts must be >= 1, got {self.attempts}")
        if self.backoff_seconds < 0:
            raise ValueError("retry.backoff_seconds cannot be negative")


@dataclass(frozen=True)
class LegacyMarkerSettings:
    start_prefixes: tuple[str, ...]
    return_prefixes: tuple[str, ...]


@dataclass(frozen=True)
class ReconciliationConfig:
    """The effective reconciliation configuration."""

    config_id: str
    version: int
    database: DatabaseSettings
    log_level: str
    legacy_markers: LegacyMarkerSettings
    retry: RetrySettings
    checksum: str = ""

    def __post_init__(self):
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level must be one of {sorted(VALID_LOG_LEVELS)}, "
                f"got {self.log_level!r}"
            )
