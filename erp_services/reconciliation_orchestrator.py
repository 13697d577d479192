"""
TenantReconciler -- the reconciliation pipeline for one tenant.

Contract:
    ``reconcile_tenant(tenant_id, now)`` runs the rental start sweep, then the
    expiry sweep, and returns a ``ReconciliationSummary``.  Both sweeps are
    idempotent, so the same pass can run from a CLI, a scheduled job or a
    page load.

Invariants enforced:
    - Start sweep strictly precedes the expiry sweep, so an item that starts
      and ends on the same day is started before it is returned.
    - Transient store failures rerun the whole pass after a rollback, a
      bounded number of times.  Ledger conflicts are never retried.
    - The reconciler flushes only.  ``reconcile_tenant_best_effort`` is the
      one place that opens, commits and closes its own session.

Failure modes:
    - ``reconcile_tenant`` propagates every ErpKernelError to the caller.
    - ``reconcile_tenant_best_effort`` rolls back, logs and returns None on
      ErpKernelError or SQLAlchemyError.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from erp_kernel.db.retry import run_with_retry
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import ErpKernelError, MissingIdentifierError
from erp_kernel.logging_config import LogContext, get_logger
from erp_modules.rental.config import RentalConfig
from erp_modules.rental.models import AutoReturnResult, RentalStartResult
from erp_modules.rental.service import RentalStockService

logger = get_logger("services.reconciliation")


@dataclass(frozen=True)
class ReconciliationSummary:
    """Result of one reconciliation pass."""

    tenant_id: UUID
    as_of: date
    correlation_id: str
    starts: RentalStartResult
    returns: AutoReturnResult
    attempts: int = 1

    @property
    def rental_starts_applied(self) -> int:
        return self.starts.started_count

    @property
    def rental_returns_applied(self) -> int:
        return self.returns.items_returned

    @property
    def services_closed(self) -> tuple[UUID, ...]:
        return self.returns.services_closed

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": str(self.tenant_id),
            "as_of": self.as_of.isoformat(),
            "correlation_id": self.correlation_id,
            "attempts": self.attempts,
            "rental_starts": {
                "due": self.starts.due_count,
                "applied": self.starts.started_count,
                "already_applied": self.starts.already_applied_count,
                "legacy_skipped": self.starts.legacy_count,
            },
            "rental_returns": {
                "services_examined": self.returns.services_examined,
                "items_returned": self.returns.items_returned,
                "services_closed": [str(s) for s in self.services_closed],
            },
        }


def _as_date(now: date | datetime) -> date:
    if isinstance(now, datetime):
        return now.date()
    return now


class TenantReconciler:
    """Runs the reconciliation pipeline against one session."""

    def __init__(
        self,
        session: Session,
        rental_service: RentalStockService,
        clock: Clock | None = None,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session
        self._rental = rental_service
        self._clock = clock or SystemClock()
        self._retry_attempts = retry_attempts
        self._retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_session(
        cls,
        session: Session,
        clock: Clock | None = None,
        rental_config: RentalConfig | None = None,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.2,
    ) -> TenantReconciler:
        """Create a fully wired reconciler from a session."""
        effective_clock = clock or SystemClock()
        return cls(
            session=session,
            rental_service=RentalStockService(
                session, clock=effective_clock, config=rental_config
            ),
            clock=effective_clock,
            retry_attempts=retry_attempts,
            retry_backoff_seconds=retry_backoff_seconds,
        )

    def reconcile_tenant(
        self, tenant_id: UUID, now: date | datetime | None = None
    ) -> ReconciliationSummary:
        """Start sweep, then expiry sweep, for ``tenant_id`` as of ``now``."""
        if tenant_id is None:
            raise MissingIdentifierError("tenant_id")

        as_of = _as_date(now) if now is not None else self._clock.today()
        correlation_id = str(uuid4())
        attempts = 0

        def run_pass() -> tuple[RentalStartResult, AutoReturnResult]:
            nonlocal attempts
            attempts += 1
            starts = self._rental.apply_due_rental_starts(tenant_id, as_of)
            returns = self._rental.auto_return_expired(tenant_id, as_of)
            return starts, returns

        with LogContext.bind(correlation_id=correlation_id, tenant_id=tenant_id):
            logger.info("reconciliation_started", extra={"as_of": as_of})
            started_at = time.monotonic()

            starts, returns = run_with_retry(
                run_pass,
                attempts=self._retry_attempts,
                backoff_seconds=self._retry_backoff_seconds,
                on_retry=self._session.rollback,
                sleep=self._sleep,
            )

            summary = ReconciliationSummary(
                tenant_id=tenant_id,
                as_of=as_of,
                correlation_id=correlation_id,
                starts=starts,
                returns=returns,
                attempts=attempts,
            )
            logger.info(
                "reconciliation_completed",
                extra={
                    "as_of": as_of,
                    "rental_starts_applied": summary.rental_starts_applied,
                    "rental_returns_applied": summary.rental_returns_applied,
                    "services_closed": len(summary.services_closed),
                    "attempts": attempts,
                    "duration_ms": round((time.monotonic() - started_at) * 1000, 2),
                },
            )
        return summary


def reconcile_tenant(
    session: Session,
    tenant_id: UUID,
    now: date | datetime | None = None,
    clock: Clock | None = None,
    rental_config: RentalConfig | None = None,
) -> ReconciliationSummary:
    """Functional shortcut over ``TenantReconciler``.  Flushes, never commits."""
    reconciler = TenantReconciler.from_session(
        session, clock=clock, rental_config=rental_config
    )
    return reconciler.reconcile_tenant(tenant_id, now)


def reconcile_tenant_best_effort(
    session_factory: Callable[[], Session],
    tenant_id: UUID,
    clock: Clock | None = None,
    rental_config: RentalConfig | None = None,
) -> ReconciliationSummary | None:
    """
    Opportunistic background reconciliation.

    Commits on success.  On failure the session is rolled back, the error is
    logged, and ``None`` is returned; the next trigger tries again.
    """
    session = session_factory()
    try:
        summary = reconcile_tenant(
            session, tenant_id, clock=clock, rental_config=rental_config
        )
        session.commit()
        return summary
    except (ErpKernelError, SQLAlchemyError) as exc:
        session.rollback()
        logger.warning(
            "background_reconciliation_failed",
            extra={
                "tenant_id": str(tenant_id),
                "error_code": (
                    exc.code if isinstance(exc, ErpKernelError) else type(exc).__name__
                ),
            },
            exc_info=True,
        )
        return None
    finally:
        session.close()
