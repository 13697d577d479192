"""
Client Services Module Service (``erp_modules.client_services.service``).

Responsibility
--------------
Creates a confirmed service with its lines.  For a rental it stores the
service-level window (earliest start, latest end) and the summed deposit;
stock is left alone until the start sweep.  For a sale it appends one
``sale`` movement (-qty) per line, referencing the line.

Invariants enforced
-------------------
* All validation happens before the first write.
* Sale lines carry no rental window; rental lines always carry both dates.
* Flush only; the caller owns commit and rollback.

Usage::

    booking = ServiceBookingService(session, clock=clock)
    booked = booking.create_service(
        tenant_id, client_id, ServiceType.RENTAL,
        [ServiceLine(article_id, qty=2, unit_price=Decimal("40"),
                     rental_start=date(2024, 3, 1), rental_end=date(2024, 3, 5))],
    )
"""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from erp_kernel.db.retry import store_errors
from erp_kernel.domain.dtos import MovementReason, MovementSpec, RefTable
from erp_kernel.exceptions import InvalidServiceLineError
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.models.service import (
    ServiceItemModel,
    ServiceModel,
    ServiceStatus,
    ServiceType,
)
from erp_kernel.services.base import BaseService
from erp_kernel.services.ledger_service import LedgerService
from erp_modules.client_services.helpers import (
    rental_window,
    service_total,
    total_deposit,
    validate_lines,
)
from erp_modules.client_services.models import BookedService, ServiceLine

logger = get_logger("modules.client_services.service")


class ServiceBookingService(BaseService):

    def create_service(
        self,
        tenant_id: UUID,
        client_id: UUID | None,
        service_type: ServiceType | str,
        lines: Sequence[ServiceLine],
        discount_amount: Decimal = Decimal("0"),
        created_at: datetime | None = None,
    ) -> BookedService:
        self._require(tenant_id=tenant_id)
        try:
            kind = ServiceType(service_type)
        except ValueError:
            raise InvalidServiceLineError(
                None, f"unknown service type {service_type!r}"
            ) from None
        validate_lines(kind, lines)
        total = service_total(lines, discount_amount)

        is_rental = kind is ServiceType.RENTAL
        window_start, window_end = rental_window(lines) if is_rental else (None, None)
        stamp = created_at or self._clock.now()

        service = ServiceModel(
            id=uuid4(),
            tenant_id=tenant_id,
            client_id=client_id,
            type=kind.value,
            status=ServiceStatus.CONFIRMED.value,
            rental_start=window_start,
            rental_end=window_end,
            rental_deposit=total_deposit(lines) if is_rental else Decimal("0"),
            discount_amount=Decimal(discount_amount),
            total=total,
            created_at=stamp,
        )
        items = [
            ServiceItemModel(
                id=uuid4(),
                tenant_id=tenant_id,
                service_id=service.id,
                article_id=line.article_id,
                position=position,
                qty=line.qty,
                unit_price=Decimal(line.unit_price),
                rental_deposit=(
                    Decimal(line.rental_deposit or 0) if is_rental else None
                ),
                rental_start=line.rental_start if is_rental else None,
                rental_end=line.rental_end if is_rental else None,
                created_at=stamp,
            )
            for position, line in enumerate(lines)
        ]

        with LogContext.bind(tenant_id=tenant_id, service_id=service.id):
            with store_errors("create_service"):
                self._session.add(service)
                self._session.add_all(items)
                self._session.flush()

            movements = ()
            if kind is ServiceType.SALE:
                result = LedgerService(self._session, self._clock).append_events(
                    (
                        MovementSpec(
                            tenant_id=tenant_id,
                            article_id=item.article_id,
                            qty_delta=-item.qty,
                            reason=MovementReason.SALE.value,
                            ref_table=RefTable.SERVICE_ITEMS.value,
                            ref_id=str(item.id),
                        )
                        for item in items
                    ),
                    created_at=stamp,
                )
                movements = result.appended

            logger.info(
                "service_created",
                extra={
                    "service_type": kind.value,
                    "lines": len(items),
                    "total": str(total),
                    "rental_start": window_start,
                    "rental_end": window_end,
                    "stock_movements": len(movements),
                },
            )

        return BookedService(
            service=service.to_dto(),
            items=tuple(item.to_dto() for item in items),
            movements=tuple(movements),
        )
