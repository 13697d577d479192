"""
Rental Module Service (``erp_modules.rental.service``).

Responsibility
--------------
Reconciles rental stock against the movement ledger:

* ``apply_due_rental_starts`` -- stock-out for every rental line whose start
  date has arrived.
* ``auto_return_expired`` -- stock-in for every started line of a rental
  whose window has ended, then closes the service.
* ``get_returnable_items`` / ``perform_return`` / ``return_item`` /
  ``rental_item_states`` -- the operator return flow.

Invariants enforced
-------------------
* Every append is preceded by a fresh ledger read; an event is never applied
  blindly twice.  The partial unique index settles concurrent passes.
* A return is appended only for an item that is currently returnable.
* A service flips to ``returned`` only after its return inserts succeeded
  and no rental-eligible item is left without a return row.
* Flush only; the caller owns commit and rollback.

Failure modes
-------------
* ``MissingIdentifierError`` / ``InvalidIdentifierError`` before any I/O.
* ``TransientStoreError`` from any read aborts before status changes.
* ``ServiceNotFoundError`` for an unknown service.
* ``return_item`` only: ``RentalEventAlreadyAppliedError`` when the item is
  already returned, ``ItemNotReturnableError`` when it was never started.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.db.retry import store_errors
from erp_kernel.domain.clock import Clock
from erp_kernel.domain.dtos import MovementReason, MovementSpec, RefTable, ServiceItemRecord
from erp_kernel.exceptions import ItemNotReturnableError, RentalEventAlreadyAppliedError
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.models.service import ServiceModel, ServiceStatus
from erp_kernel.selectors.ledger_selector import LedgerSelector
from erp_kernel.selectors.service_selector import ServiceSelector
from erp_kernel.services.base import BaseService
from erp_kernel.services.ledger_service import LedgerService
from erp_modules.rental.config import RentalConfig
from erp_modules.rental.helpers import (
    choose_return_path,
    classify_item,
    outstanding_items,
    returnable_items,
    to_view,
)
from erp_modules.rental.models import (
    AutoReturnResult,
    RentalItemState,
    RentalItemView,
    RentalReturnResult,
    RentalStartResult,
    ReturnPath,
)

logger = get_logger("modules.rental.service")

_ITEMS = RefTable.SERVICE_ITEMS.value
_START = MovementReason.RENTAL_START.value
_RETURN = MovementReason.RENTAL_RETURN.value


class RentalStockService(BaseService):
    """Rental start/return reconciliation for one tenant at a time."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: RentalConfig | None = None,
    ):
        super().__init__(session, clock)
        self._config = config or RentalConfig()
        self._services = ServiceSelector(session)
        self._ledger_reads = LedgerSelector(session)
        self._ledger = LedgerService(session, self._clock)

    # -----------------------------------------------------------------
    # Ledger-derived state
    # -----------------------------------------------------------------

    def _marks(
        self, tenant_id: UUID, items: tuple[ServiceItemRecord, ...]
    ) -> tuple[set[str], set[str]]:
        ids = [i.id for i in items]
        started = self._ledger_reads.referenced_ids(tenant_id, _ITEMS, _START, ids)
        returned = self._ledger_reads.referenced_ids(tenant_id, _ITEMS, _RETURN, ids)
        return started, returned

    def _return_path(self, tenant_id: UUID, service_id: UUID) -> ReturnPath:
        reasons = self._ledger_reads.service_level_reasons(tenant_id, service_id)
        return choose_return_path(
            reasons,
            self._config.legacy_start_prefixes,
            self._config.legacy_return_prefixes,
        )

    def _resolve(self, tenant_id: UUID, service_id: UUID):
        """Load items, ledger marks and the return path for one service."""
        self._services.get_service(tenant_id, service_id)
        items = self._services.rental_items(tenant_id, service_id)
        started, returned = self._marks(tenant_id, items)
        path = self._return_path(tenant_id, service_id)
        return items, started, returned, path

    # -----------------------------------------------------------------
    # Start sweep
    # -----------------------------------------------------------------

    def apply_due_rental_starts(self, tenant_id: UUID, today: date) -> RentalStartResult:
        """
        Append one ``rental_start`` (-qty) per due, not-yet-started item.

        Repeated calls on the same day append nothing after the first.
        Items that lose a concurrent insert race are reported as already
        applied.  Services carrying a legacy start marker already had their
        stock taken out; their items are skipped and reported in
        ``legacy_item_ids``.
        """
        self._require(tenant_id=tenant_id, today=today)
        due = self._services.find_due_rental_items(tenant_id, today)
        if not due:
            logger.debug(
                "rental_starts_none_due",
                extra={"tenant_id": str(tenant_id), "as_of": today},
            )
            return RentalStartResult(tenant_id=tenant_id, as_of=today)

        legacy_services = {
            sid
            for sid in {i.service_id for i in due}
            if self._return_path(tenant_id, sid) is ReturnPath.LEGACY
        }
        legacy = tuple(i.id for i in due if i.service_id in legacy_services)
        structured = [i for i in due if i.service_id not in legacy_services]

        started = self._ledger_reads.referenced_ids(
            tenant_id, _ITEMS, _START, [i.id for i in structured]
        )
        pending = [i for i in structured if str(i.id) not in started]

        by_ref = {str(i.id): i for i in pending}
        result = self._ledger.append_events(
            MovementSpec(
                tenant_id=tenant_id,
                article_id=item.article_id,
                qty_delta=-item.qty,
                reason=_START,
                ref_table=_ITEMS,
                ref_id=str(item.id),
            )
            for item in pending
        )

        applied = tuple(UUID(m.ref_id) for m in result.appended)
        conflicts = tuple(by_ref[s.ref_id].id for s in result.already_applied)

        logger.info(
            "rental_starts_applied",
            extra={
                "tenant_id": str(tenant_id),
                "as_of": today,
                "due": len(due),
                "already_started": len(started),
                "legacy_skipped": len(legacy),
                "started": len(applied),
                "conflicts": len(conflicts),
            },
        )
        return RentalStartResult(
            tenant_id=tenant_id,
            as_of=today,
            due_count=len(due),
            started_item_ids=applied,
            already_applied_item_ids=conflicts,
            legacy_item_ids=legacy,
        )

    # -----------------------------------------------------------------
    # Return selection
    # -----------------------------------------------------------------

    def get_returnable_items(
        self, tenant_id: UUID, service_id: UUID
    ) -> tuple[RentalItemView, ...]:
        """Items that are started and not yet returned (or legacy en masse)."""
        self._require(tenant_id=tenant_id, service_id=service_id)
        items, started, returned, path = self._resolve(tenant_id, service_id)
        candidates = returnable_items(items, path, started, returned)
        return tuple(to_view(i, RentalItemState.STARTED, True) for i in candidates)

    def rental_item_states(
        self, tenant_id: UUID, service_id: UUID, today: date
    ) -> tuple[RentalItemView, ...]:
        """Every rental-eligible item of the service with its current state."""
        self._require(tenant_id=tenant_id, service_id=service_id, today=today)
        items, started, returned, path = self._resolve(tenant_id, service_id)
        returnable = {i.id for i in returnable_items(items, path, started, returned)}
        return tuple(
            to_view(
                item,
                classify_item(item, today, started, returned, path),
                item.id in returnable,
            )
            for item in items
        )

    def perform_return(
        self,
        tenant_id: UUID,
        service_id: UUID,
        item_ids: list[UUID] | None = None,
    ) -> RentalReturnResult:
        """
        Return every returnable item, or only those in ``item_ids``.

        Requested ids that are not returnable are skipped and reported in
        ``skipped_item_ids``.  Calling this on a fully returned service
        appends nothing and leaves the status unchanged.
        """
        self._require(tenant_id=tenant_id, service_id=service_id)
        requested: list[UUID] | None = None
        if item_ids is not None:
            requested = [self._as_uuid("item_ids", i) for i in item_ids]

        with LogContext.bind(tenant_id=tenant_id, service_id=service_id):
            items, started, returned, path = self._resolve(tenant_id, service_id)
            candidates = returnable_items(items, path, started, returned)

            skipped: tuple[UUID, ...] = ()
            if requested is not None:
                wanted = set(requested)
                candidate_ids = {c.id for c in candidates}
                candidates = [c for c in candidates if c.id in wanted]
                skipped = tuple(r for r in requested if r not in candidate_ids)

            result = self._ledger.append_events(
                MovementSpec(
                    tenant_id=tenant_id,
                    article_id=item.article_id,
                    qty_delta=item.qty,
                    reason=_RETURN,
                    ref_table=_ITEMS,
                    ref_id=str(item.id),
                )
                for item in candidates
            )
            returned_now = tuple(UUID(m.ref_id) for m in result.appended)
            raced = tuple(UUID(s.ref_id) for s in result.already_applied)

            if raced:
                logger.info(
                    "rental_return_conflict",
                    extra={"item_ids": [str(i) for i in raced]},
                )
            if skipped:
                logger.info(
                    "rental_return_items_skipped",
                    extra={"item_ids": [str(i) for i in skipped]},
                )

            outstanding, closed = self._close_if_settled(tenant_id, service_id, items)

            logger.info(
                "rental_return_performed",
                extra={
                    "path": path.value,
                    "returned": len(returned_now),
                    "outstanding": len(outstanding),
                    "service_closed": closed,
                },
            )

        return RentalReturnResult(
            service_id=service_id,
            path=path,
            returned_item_ids=returned_now,
            already_returned_item_ids=raced,
            skipped_item_ids=skipped,
            outstanding_item_ids=outstanding,
            service_closed=closed,
        )

    def return_item(
        self, tenant_id: UUID, service_id: UUID, item_id: UUID
    ) -> RentalReturnResult:
        """
        Operator single-item return.

        Unlike perform_return this raises instead of skipping, so the caller
        can tell "already returned" apart from "not started yet".
        """
        self._require(tenant_id=tenant_id, service_id=service_id)
        item_id = self._as_uuid("item_id", item_id)
        with LogContext.bind(tenant_id=tenant_id, service_id=service_id):
            items, started, returned, path = self._resolve(tenant_id, service_id)
            item = next((i for i in items if i.id == item_id), None)
            if item is None:
                raise ItemNotReturnableError(
                    str(service_id), str(item_id), "not_a_rental_item"
                )
            if str(item_id) in returned:
                raise RentalEventAlreadyAppliedError(
                    tenant_id=str(tenant_id),
                    reason=_RETURN,
                    ref_table=_ITEMS,
                    ref_id=str(item_id),
                )
            if item not in returnable_items(items, path, started, returned):
                raise ItemNotReturnableError(
                    str(service_id), str(item_id), RentalItemState.SCHEDULED.value
                )

            self._ledger.append_event(
                tenant_id=tenant_id,
                article_id=item.article_id,
                qty_delta=item.qty,
                reason=_RETURN,
                ref_table=_ITEMS,
                ref_id=str(item.id),
            )
            outstanding, closed = self._close_if_settled(tenant_id, service_id, items)
            logger.info(
                "rental_item_returned",
                extra={"item_id": str(item_id), "service_closed": closed},
            )

        return RentalReturnResult(
            service_id=service_id,
            path=path,
            returned_item_ids=(item_id,),
            outstanding_item_ids=outstanding,
            service_closed=closed,
        )

    # -----------------------------------------------------------------
    # Expiry sweep
    # -----------------------------------------------------------------

    def auto_return_expired(self, tenant_id: UUID, today: date) -> AutoReturnResult:
        """
        Return everything on confirmed rentals whose window ended by ``today``.

        Run after apply_due_rental_starts in the same pass.
        """
        self._require(tenant_id=tenant_id, today=today)
        expired = self._services.confirmed_rentals(tenant_id, ending_on_or_before=today)
        results = tuple(self.perform_return(tenant_id, svc.id) for svc in expired)
        summary = AutoReturnResult(tenant_id=tenant_id, as_of=today, services=results)

        logger.info(
            "rental_expiry_sweep_completed",
            extra={
                "tenant_id": str(tenant_id),
                "as_of": today,
                "services_examined": summary.services_examined,
                "services_closed": len(summary.services_closed),
                "items_returned": summary.items_returned,
            },
        )
        return summary

    # -----------------------------------------------------------------
    # Status
    # -----------------------------------------------------------------

    def _close_if_settled(
        self,
        tenant_id: UUID,
        service_id: UUID,
        items: tuple[ServiceItemRecord, ...],
    ) -> tuple[tuple[UUID, ...], bool]:
        """
        Re-read return marks and flip a confirmed service to ``returned``
        when no eligible item is left without a return row.
        """
        returned = self._ledger_reads.referenced_ids(
            tenant_id, _ITEMS, _RETURN, [i.id for i in items]
        )
        outstanding = tuple(i.id for i in outstanding_items(items, returned))
        if outstanding:
            return outstanding, False

        stmt = select(ServiceModel).where(
            ServiceModel.tenant_id == tenant_id,
            ServiceModel.id == service_id,
        )
        with store_errors("close_service"):
            service = self._session.execute(stmt).scalar_one()
            if service.status != ServiceStatus.CONFIRMED.value:
                return outstanding, False
            service.status = ServiceStatus.RETURNED.value
            self._session.flush()

        logger.info("service_returned", extra={"service_id": str(service_id)})
        return outstanding, True
