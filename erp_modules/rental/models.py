"""
Rental Domain Models (``erp_modules.rental.models``).

Frozen value objects describing per-item rental state and the outcome of
each reconciliation operation.  No I/O.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from uuid import UUID


class RentalItemState(str, Enum):
    """
    Ledger-derived state of one rental-eligible line.

    SCHEDULED -> DUE -> STARTED -> RETURNED.  DUE means the start date has
    arrived but no rental_start row exists yet.
    """

    SCHEDULED = "scheduled"
    DUE = "due"
    STARTED = "started"
    RETURNED = "returned"


class ReturnPath(str, Enum):
    """How returnability was decided for a service."""

    STRUCTURED = "structured"  # per-item rental_start / rental_return rows
    LEGACY = "legacy"  # per-service free-text marker, items returnable en masse


@dataclass(frozen=True)
class RentalItemView:
    item_id: UUID
    service_id: UUID
    article_id: UUID
    qty: int
    rental_start: date
    rental_end: date
    state: RentalItemState
    returnable: bool = False


@dataclass(frozen=True)
class RentalStartResult:
    """Outcome of one start sweep."""

    tenant_id: UUID
    as_of: date
    due_count: int = 0
    started_item_ids: tuple[UUID, ...] = ()
    already_applied_item_ids: tuple[UUID, ...] = ()
    legacy_item_ids: tuple[UUID, ...] = ()

    @property
    def started_count(self) -> int:
        return len(self.started_item_ids)

    @property
    def already_applied_count(self) -> int:
        return len(self.already_applied_item_ids)

    @property
    def legacy_count(self) -> int:
        return len(self.legacy_item_ids)


@dataclass(frozen=True)
class RentalReturnResult:
    """
    Outcome of returning items on one service.

    ``skipped_item_ids`` are requested ids that were not returnable.
    ``already_returned_item_ids`` lost a concurrent insert race.
    """

    service_id: UUID
    path: ReturnPath
    returned_item_ids: tuple[UUID, ...] = ()
    already_returned_item_ids: tuple[UUID, ...] = ()
    skipped_item_ids: tuple[UUID, ...] = ()
    outstanding_item_ids: tuple[UUID, ...] = ()
    service_closed: bool = False

    @property
    def returned_count(self) -> int:
        return len(self.returned_item_ids)


@dataclass(frozen=True)
class AutoReturnResult:
    """Outcome of one expiry sweep."""

    tenant_id: UUID
    as_of: date
    services: tuple[RentalReturnResult, ...] = field(default_factory=tuple)

    @property
    def services_examined(self) -> int:
        return len(self.services)

    @property
    def services_closed(self) -> tuple[UUID, ...]:
        return tuple(r.service_id for r in self.services if r.service_closed)

    @property
    def items_returned(self) -> int:
        return sum(r.returned_count for r in self.services)
