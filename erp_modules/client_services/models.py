"""
Client Services Domain Models (``erp_modules.client_services.models``).
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from erp_kernel.domain.dtos import ServiceItemRecord, ServiceRecord, StockMovementRecord


@dataclass(frozen=True)
class ServiceLine:
    """A requested line, before validation."""

    article_id: UUID
    qty: int
    unit_price: Decimal = Decimal("0")
    rental_start: date | None = None
    rental_end: date | None = None
    rental_deposit: Decimal | None = None

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.qty) * Decimal(self.unit_price)


@dataclass(frozen=True)
class BookedService:
    service: ServiceRecord
    items: tuple[ServiceItemRecord, ...]
    movements: tuple[StockMovementRecord, ...] = ()

    @property
    def service_id(self) -> UUID:
        return self.service.id
