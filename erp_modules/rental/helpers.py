"""
Rental Pure Functions (``erp_modules.rental.helpers``).

Responsibility
--------------
Stateless decisions over already-loaded items and ledger marks: item state
classification, legacy marker detection and return-candidate selection.
``RentalStockService`` loads the inputs; nothing here touches the store.

Ledger marks are passed as sets of item ids rendered as strings, matching
how ``stock_movements.ref_id`` stores them.

Legacy compatibility
--------------------
Services booked before per-item movements existed carry a single free-text
marker referencing the whole service.  A service with a legacy start marker
and no legacy return marker takes the LEGACY path: every eligible item
without a structured return is returnable.  All other services take the
STRUCTURED path.  The two detections are never combined.  This branch exists
only to drain old data; new bookings always produce structured rows.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from erp_kernel.domain.dtos import ServiceItemRecord
from erp_modules.rental.models import RentalItemState, RentalItemView, ReturnPath


def matches_prefix(reason: str, prefixes: Iterable[str]) -> bool:
    normalized = reason.strip().lower()
    return any(normalized.startswith(prefix) for prefix in prefixes)


def choose_return_path(
    service_reasons: Iterable[str],
    legacy_start_prefixes: Sequence[str],
    legacy_return_prefixes: Sequence[str],
) -> ReturnPath:
    """Pick the return path from the reasons of a service's service-level rows."""
    reasons = list(service_reasons)
    has_start = any(matches_prefix(r, legacy_start_prefixes) for r in reasons)
    has_return = any(matches_prefix(r, legacy_return_prefixes) for r in reasons)
    if has_start and not has_return:
        return ReturnPath.LEGACY
    return ReturnPath.STRUCTURED


def returnable_items(
    items: Iterable[ServiceItemRecord],
    path: ReturnPath,
    started_ids: set[str],
    returned_ids: set[str],
) -> list[ServiceItemRecord]:
    """Eligible items that may be returned now, in input order."""
    eligible = [i for i in items if i.is_rental_eligible]
    if path is ReturnPath.LEGACY:
        return [i for i in eligible if str(i.id) not in returned_ids]
    return [
        i
        for i in eligible
        if str(i.id) in started_ids and str(i.id) not in returned_ids
    ]


def outstanding_items(
    items: Iterable[ServiceItemRecord],
    returned_ids: set[str],
) -> list[ServiceItemRecord]:
    """Eligible items still out or not yet started (no return row)."""
    return [
        i for i in items if i.is_rental_eligible and str(i.id) not in returned_ids
    ]


def classify_item(
    item: ServiceItemRecord,
    today: date,
    started_ids: set[str],
    returned_ids: set[str],
    path: ReturnPath = ReturnPath.STRUCTURED,
) -> RentalItemState:
    key = str(item.id)
    if key in returned_ids:
        return RentalItemState.RETURNED
    if key in started_ids:
        return RentalItemState.STARTED
    arrived = item.rental_start is not None and item.rental_start <= today
    if path is ReturnPath.LEGACY:
        # stock already left under the service marker; only the date decides
        return RentalItemState.STARTED if arrived else RentalItemState.SCHEDULED
    return RentalItemState.DUE if arrived else RentalItemState.SCHEDULED


def to_view(
    item: ServiceItemRecord, state: RentalItemState, returnable: bool
) -> RentalItemView:
    return RentalItemView(
        item_id=item.id,
        service_id=item.service_id,
        article_id=item.article_id,
        qty=item.qty,
        rental_start=item.rental_start,
        rental_end=item.rental_end,
        state=state,
        returnable=returnable,
    )
