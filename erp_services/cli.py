"""
Command-line entry point for one reconciliation pass.

Usage:
    erp-reconcile --tenant-id <uuid>
    erp-reconcile --tenant-id <uuid> --as-of 2024-03-16
    erp-reconcile --tenant-id <uuid> --config erp.yaml --database-url sqlite:///erp.db

Prints the ReconciliationSummary as JSON on stdout.  Exit status is 0 on
success, 1 on a reconciliation error, 2 on bad arguments.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from uuid import UUID

from erp_config import get_active_config, rental_config
from erp_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from erp_kernel.domain.clock import DeterministicClock, SystemClock
from erp_kernel.exceptions import ErpKernelError
from erp_kernel.logging_config import configure_logging, get_logger
from erp_services.reconciliation_orchestrator import TenantReconciler

logger = get_logger("cli.reconcile")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="erp-reconcile",
        description="Apply due rental starts and expired returns for one tenant.",
    )
    parser.add_argument("--tenant-id", required=True, type=UUID, help="Tenant UUID")
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Reconcile as of this date (YYYY-MM-DD). Defaults to today.",
    )
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Overrides database.url from the config",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before reconciling",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = get_active_config(args.config)
    configure_logging(level=config.log_level, stream=sys.stderr)

    init_engine_from_url(
        args.database_url or config.database.url,
        echo=config.database.echo,
    )
    if args.create_tables:
        create_tables()

    clock = DeterministicClock.at_date(args.as_of) if args.as_of else SystemClock()

    try:
        with session_scope() as session:
            reconciler = TenantReconciler.from_session(
                session,
                clock=clock,
                rental_config=rental_config(config),
                retry_attempts=config.retry.attempts,
                retry_backoff_seconds=config.retry.backoff_seconds,
            )
            summary = reconciler.reconcile_tenant(args.tenant_id)
    except ErpKernelError as exc:
        logger.error(
            "reconciliation_failed",
            extra={"tenant_id": str(args.tenant_id), "error_code": exc.code},
        )
        print(json.dumps({"error": exc.code, "message": str(exc)}), file=sys.stderr)
        return 1

    print(json.dumps(summary.to_dict(), indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
