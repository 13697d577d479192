"""
erp_config -- single public entrypoint for reconciliation configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration at
    runtime.  It reads the bundled ``defaults.yaml`` (or an explicit file),
    applies ``ERP_DATABASE_URL`` / ``ERP_LOG_LEVEL`` from the environment,
    validates, and returns a frozen ``ReconciliationConfig``.

Architecture position:
    Sits above ``erp_kernel`` and ``erp_modules``.  The kernel never imports
    from here; ``rental_config()`` translates settings into the rental
    module's own config type.

Failure modes:
    - ``FileNotFoundError`` for a missing config file.
    - ``ValueError`` for invalid settings.
    - ``yaml.YAMLError`` for malformed YAML.

Every successful load emits an ``erp_config_loaded`` log entry carrying the
config id, version and checksum.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from erp_config.loader import apply_env_overrides, compute_checksum, load_yaml_file, parse_config
from erp_config.schema import ReconciliationConfig
from erp_modules.rental.config import RentalConfig

_logger = logging.getLogger("erp_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ReconciliationConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML file to load.  Defaults to the bundled defaults.yaml.
        environ: Environment mapping for overrides.  Defaults to os.environ.

    Returns:
        A validated, frozen ReconciliationConfig whose checksum covers the
        effective (post-override) settings.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    raw = load_yaml_file(source)
    effective = apply_env_overrides(raw, os.environ if environ is None else environ)
    config = parse_config(effective)

    _logger.info(
        "erp_config_loaded",
        extra={
            "config_id": config.config_id,
            "version": config.version,
            "checksum": config.checksum,
            "source": str(source),
        },
    )
    return config


def rental_config(config: ReconciliationConfig) -> RentalConfig:
    """Translate the legacy marker settings into the rental module's config."""
    return RentalConfig(
        legacy_start_prefixes=config.legacy_markers.start_prefixes,
        legacy_return_prefixes=config.legacy_markers.return_prefixes,
    )


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ReconciliationConfig",
    "compute_checksum",
    "get_active_config",
    "rental_config",
]
