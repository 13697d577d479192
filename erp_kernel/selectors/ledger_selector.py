"""
Module: erp_kernel.selectors.ledger_selector
Responsibility: Read-only queries over the stock movement ledger: on-hand
    quantity, per-article history, and the existence checks the reconciler
    runs before appending structured events.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - On-hand quantity is always derived: sum(qty_delta) at query time.
    - Existence checks compare ref_id as text, the way rows store it.

Failure modes:
    - TransientStoreError on any driver failure.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select

from erp_kernel.db.retry import store_errors
from erp_kernel.domain.dtos import RefTable, StockMovementRecord
from erp_kernel.models.stock_movement import StockMovementModel
from erp_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector):
    """Read access to ``stock_movements``."""

    def stock_on_hand(self, tenant_id: UUID, article_id: UUID) -> int:
        stmt = select(func.coalesce(func.sum(StockMovementModel.qty_delta), 0)).where(
            StockMovementModel.tenant_id == tenant_id,
            StockMovementModel.article_id == article_id,
        )
        with store_errors("stock_on_hand"):
            return int(self.session.execute(stmt).scalar_one())

    def movement_history(
        self,
        tenant_id: UUID,
        article_id: UUID,
        limit: int | None = None,
    ) -> tuple[StockMovementRecord, ...]:
        """Movements for one article, newest first."""
        stmt = (
            select(StockMovementModel)
            .where(
                StockMovementModel.tenant_id == tenant_id,
                StockMovementModel.article_id == article_id,
            )
            .order_by(StockMovementModel.created_at.desc(), StockMovementModel.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with store_errors("movement_history"):
            rows = self.session.execute(stmt).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def referenced_ids(
        self,
        tenant_id: UUID,
        ref_table: str,
        reason: str,
        ref_ids: Iterable[UUID | str],
    ) -> set[str]:
        """
        Return the subset of ``ref_ids`` that already carry a ``reason`` row.

        An empty input returns an empty set without touching the store.
        """
        wanted = {str(ref_id) for ref_id in ref_ids}
        if not wanted:
            return set()
        stmt = select(StockMovementModel.ref_id).where(
            StockMovementModel.tenant_id == tenant_id,
            StockMovementModel.ref_table == ref_table,
            StockMovementModel.reason == reason,
            StockMovementModel.ref_id.in_(sorted(wanted)),
        )
        with store_errors("referenced_ids"):
            return set(self.session.execute(stmt).scalars().all())

    def service_level_reasons(self, tenant_id: UUID, service_id: UUID) -> tuple[str, ...]:
        """Reasons of every row referencing the service as a whole."""
        stmt = (
            select(StockMovementModel.reason)
            .where(
                StockMovementModel.tenant_id == tenant_id,
                StockMovementModel.ref_table == RefTable.SERVICES.value,
                StockMovementModel.ref_id == str(service_id),
            )
            .order_by(StockMovementModel.created_at)
        )
        with store_errors("service_level_reasons"):
            return tuple(self.session.execute(stmt).scalars().all())
