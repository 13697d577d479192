"""
Module: erp_kernel.models.stock_movement
Responsibility: ORM model for the append-only stock movement ledger.
Architecture position: Kernel > Models.  Imports from db/base.py and domain/.

Invariants enforced:
    - On-hand quantity of an article in a tenant is sum(qty_delta) over its
      rows.  No denormalized quantity exists anywhere.
    - Append-only: UPDATE and DELETE are blocked by the ORM listeners in
      db/immutability.py.
    - At most one structured event (rental_start, rental_return, sale) per
      (tenant_id, ref_table, ref_id, reason), enforced by a partial unique
      index.  Legacy free-text reasons are outside the index.

Failure modes:
    - IntegrityError on a second structured event for the same reference.
"""

from uuid import UUID

from sqlalchemy import Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import TenantScopedBase, UUIDString
from erp_kernel.domain.dtos import STRUCTURED_REASONS, StockMovementRecord

_STRUCTURED_REASON_SQL = "reason IN ({})".format(
    ", ".join(f"'{r}'" for r in sorted(STRUCTURED_REASONS))
)


class StockMovementModel(TenantScopedBase):
    """One signed quantity change to an article's stock."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        Index("ix_stock_movements_tenant_article", "tenant_id", "article_id"),
        Index("ix_stock_movements_ref", "tenant_id", "ref_table", "ref_id"),
        Index(
            "uq_stock_movements_structured_event",
            "tenant_id",
            "ref_table",
            "ref_id",
            "reason",
            unique=True,
            postgresql_where=text(_STRUCTURED_REASON_SQL),
            sqlite_where=text(_STRUCTURED_REASON_SQL),
        ),
    )

    article_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    qty_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(200), nullable=False)
    ref_table: Mapped[str | None] = mapped_column(String(50), nullable=True)
    ref_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    def to_dto(self) -> StockMovementRecord:
        return StockMovementRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            article_id=self.article_id,
            qty_delta=self.qty_delta,
            reason=self.reason,
            ref_table=self.ref_table,
            ref_id=self.ref_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovementModel {self.id} article={self.article_id} "
            f"delta={self.qty_delta} reason={self.reason}>"
        )
