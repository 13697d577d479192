"""
Module: erp_kernel.models.service
Responsibility: ORM models for client services (rental or sale) and their
    line items.
Architecture position: Kernel > Models.  Imports from db/base.py only.

Invariants enforced:
    - ServiceItem.qty > 0 (CHECK constraint).
    - An item is rental-eligible iff both rental_start and rental_end are set.
    - Service-level rental window is min(item start) / max(item end), stored
      at booking time and used by the expiry sweep.

Failure modes:
    - IntegrityError on a non-positive qty or a dangling service_id.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TenantScopedBase, UUIDString
from erp_kernel.domain.dtos import ServiceItemRecord, ServiceRecord


class ServiceType(str, Enum):
    RENTAL = "rental"
    SALE = "sale"


class ServiceStatus(str, Enum):
    """
    Service lifecycle.

    Only CONFIRMED rentals are reconciled.  CONFIRMED -> RETURNED happens when
    every rental-eligible item has a return.
    """

    DRAFT = "draft"
    CONFIRMED = "confirmed"
    RETURNED = "returned"
    CANCELLED = "cancelled"


class ServiceModel(TenantScopedBase):
    """A client engagement: one rental or one sale."""

    __tablename__ = "services"

    __table_args__ = (
        Index("ix_services_tenant_type_status", "tenant_id", "type", "status"),
    )

    client_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ServiceStatus.CONFIRMED.value
    )

    rental_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    rental_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    rental_deposit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    items: Mapped[list["ServiceItemModel"]] = relationship(
        back_populates="service",
        order_by="ServiceItemModel.position",
    )

    def to_dto(self) -> ServiceRecord:
        return ServiceRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            client_id=self.client_id,
            type=self.type,
            status=self.status,
            rental_start=self.rental_start,
            rental_end=self.rental_end,
            rental_deposit=self.rental_deposit,
            discount_amount=self.discount_amount,
            total=self.total,
        )

    def __repr__(self) -> str:
        return f"<ServiceModel {self.id} type={self.type} status={self.status}>"


class ServiceItemModel(TenantScopedBase):
    """One article line on a service."""

    __tablename__ = "service_items"

    __table_args__ = (
        CheckConstraint("qty > 0", name="ck_service_items_qty_positive"),
        Index("ix_service_items_service", "tenant_id", "service_id"),
    )

    service_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("services.id"), nullable=False
    )
    article_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    rental_deposit: Mapped[Decimal | None] = mapped_column(nullable=True)
    rental_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    rental_end: Mapped[date | None] = mapped_column(Date, nullable=True)

    service: Mapped[ServiceModel] = relationship(back_populates="items")

    @property
    def is_rental_eligible(self) -> bool:
        return self.rental_start is not None and self.rental_end is not None

    def to_dto(self) -> ServiceItemRecord:
        return ServiceItemRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            service_id=self.service_id,
            article_id=self.article_id,
            qty=self.qty,
            unit_price=self.unit_price,
            rental_deposit=self.rental_deposit,
            rental_start=self.rental_start,
            rental_end=self.rental_end,
        )

    def __repr__(self) -> str:
        return f"<ServiceItemModel {self.id} article={self.article_id} qty={self.qty}>"
