"""
Ledger DTOs -- frozen dataclasses returned by kernel selectors and services.

Selectors and services never hand raw ORM instances to outer layers; they
return these immutable snapshots instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class MovementReason(str, Enum):
    """Structured ledger reasons the kernel writes and constrains."""

    RENTAL_START = "rental_start"  # stock leaves when a rental period begins
    RENTAL_RETURN = "rental_return"  # stock comes back on return
    SALE = "sale"  # one-shot sale stock-out


STRUCTURED_REASONS: frozenset[str] = frozenset(r.value for r in MovementReason)


class RefTable(str, Enum):
    """Tables a movement may point back to."""

    SERVICE_ITEMS = "service_items"
    SERVICES = "services"


@dataclass(frozen=True)
class MovementSpec:
    """A movement about to be appended to the ledger."""

    tenant_id: UUID
    article_id: UUID
    qty_delta: int
    reason: str
    ref_table: str | None = None
    ref_id: str | None = None


@dataclass(frozen=True)
class StockMovementRecord:
    """Immutable snapshot of one ledger row."""

    id: UUID
    tenant_id: UUID
    article_id: UUID
    qty_delta: int
    reason: str
    ref_table: str | None
    ref_id: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class LedgerAppendResult:
    """Outcome of a batch append.

    ``already_applied`` lists specs rejected by the uniqueness index -- they
    were applied by an earlier or concurrent pass, not lost.
    """

    appended: tuple[StockMovementRecord, ...] = ()
    already_applied: tuple[MovementSpec, ...] = ()

    @property
    def appended_count(self) -> int:
        return len(self.appended)

    @property
    def already_applied_count(self) -> int:
        return len(self.already_applied)


@dataclass(frozen=True)
class ServiceRecord:
    id: UUID
    tenant_id: UUID
    client_id: UUID | None
    type: str
    status: str
    rental_start: date | None
    rental_end: date | None
    rental_deposit: Decimal
    discount_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class ServiceItemRecord:
    """One service line.  Rental-eligible iff both window dates are set."""

    id: UUID
    tenant_id: UUID
    service_id: UUID
    article_id: UUID
    qty: int
    unit_price: Decimal
    rental_deposit: Decimal | None
    rental_start: date | None
    rental_end: date | None

    @property
    def is_rental_eligible(self) -> bool:
        return self.rental_start is not None and self.rental_end is not None


@dataclass(frozen=True)
class WorkerRecord:
    id: UUID
    tenant_id: UUID
    name: str
    cin: str | None
    salaire_base: Decimal
    joined_at: date | None
    pay_day: int | None


@dataclass(frozen=True)
class SalaryPaymentRecord:
    id: UUID
    tenant_id: UUID
    ouvrier_id: UUID
    amount: Decimal
    period: str
    paid_at: datetime | None
    notes: str | None
