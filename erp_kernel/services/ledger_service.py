"""
Module: erp_kernel.services.ledger_service
Responsibility: The only write path into ``stock_movements``.  Appends signed
    quantity rows, one SAVEPOINT per row, and turns a uniqueness violation on
    a structured event into RentalEventAlreadyAppliedError.
Architecture position: Kernel > Services.

Invariants enforced:
    - Append-only: this service never updates or deletes a movement.
    - At most one structured event per (tenant, ref_table, ref_id, reason).
      The partial unique index decides; a losing concurrent insert rolls back
      only its own SAVEPOINT and is reported as already applied.
    - Conflicts are never retried.

Failure modes:
    - RentalEventAlreadyAppliedError from append_event() on a duplicate.
    - MissingIdentifierError when tenant_id or article_id is missing.
    - TransientStoreError on driver failures (the SAVEPOINT is rolled back).

Usage:
    ledger = LedgerService(session, clock)
    result = ledger.append_events(specs)
    result.appended_count, result.already_applied_count
"""

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from erp_kernel.db.retry import store_errors
from erp_kernel.domain.dtos import (
    LedgerAppendResult,
    MovementSpec,
    StockMovementRecord,
)
from erp_kernel.exceptions import (
    MissingIdentifierError,
    RentalEventAlreadyAppliedError,
    TransientStoreError,
)
from erp_kernel.logging_config import get_logger
from erp_kernel.models.stock_movement import StockMovementModel
from erp_kernel.services.base import BaseService

logger = get_logger("services.ledger")


class LedgerService(BaseService):
    """Append-only writer for the stock movement ledger."""

    def append_event(
        self,
        tenant_id: UUID,
        article_id: UUID,
        qty_delta: int,
        reason: str,
        ref_table: str | None = None,
        ref_id: UUID | str | None = None,
        created_at: datetime | None = None,
    ) -> StockMovementRecord:
        """
        Insert one movement inside its own SAVEPOINT.

        Raises:
            RentalEventAlreadyAppliedError: a row with the same structured
                key already exists.  Only this SAVEPOINT is rolled back.
        """
        if tenant_id is None:
            raise MissingIdentifierError("tenant_id")
        if article_id is None:
            raise MissingIdentifierError("article_id")

        ref = str(ref_id) if ref_id is not None else None
        row = StockMovementModel(
            tenant_id=tenant_id,
            article_id=article_id,
            qty_delta=qty_delta,
            reason=reason,
            ref_table=ref_table,
            ref_id=ref,
            created_at=created_at or self._clock.now(),
        )

        savepoint = self._session.begin_nested()
        try:
            with store_errors("append_stock_movement"):
                self._session.add(row)
                self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.info(
                "ledger_event_already_applied",
                extra={
                    "tenant_id": str(tenant_id),
                    "reason": reason,
                    "ref_table": ref_table,
                    "ref_id": ref,
                },
            )
            raise RentalEventAlreadyAppliedError(
                tenant_id=str(tenant_id),
                reason=reason,
                ref_table=ref_table,
                ref_id=ref,
            ) from None
        except TransientStoreError:
            savepoint.rollback()
            raise
        savepoint.commit()

        logger.debug(
            "stock_movement_appended",
            extra={
                "movement_id": str(row.id),
                "article_id": str(article_id),
                "qty_delta": qty_delta,
                "reason": reason,
                "ref_table": ref_table,
                "ref_id": ref,
            },
        )
        return row.to_dto()

    def append_movement(
        self, spec: MovementSpec, created_at: datetime | None = None
    ) -> StockMovementRecord:
        return self.append_event(
            tenant_id=spec.tenant_id,
            article_id=spec.article_id,
            qty_delta=spec.qty_delta,
            reason=spec.reason,
            ref_table=spec.ref_table,
            ref_id=spec.ref_id,
            created_at=created_at,
        )

    def append_events(
        self,
        movements: Iterable[MovementSpec],
        created_at: datetime | None = None,
    ) -> LedgerAppendResult:
        """
        Append a batch, one SAVEPOINT per row.

        A duplicate does not abort the batch; it is counted in
        ``already_applied``.  Any other failure propagates, leaving rows
        appended before it in the caller's transaction.
        """
        stamp = created_at or self._clock.now()
        appended: list[StockMovementRecord] = []
        already_applied: list[MovementSpec] = []

        for spec in movements:
            try:
                appended.append(self.append_movement(spec, created_at=stamp))
            except RentalEventAlreadyAppliedError:
                already_applied.append(spec)

        return LedgerAppendResult(
            appended=tuple(appended),
            already_applied=tuple(already_applied),
        )
