"""
Client Services Pure Functions (``erp_modules.client_services.helpers``).

Validation and totals for a service booking.  Raises
``InvalidServiceLineError`` with the offending line index; a ``None`` index
means the service as a whole.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from erp_kernel.exceptions import InvalidServiceLineError
from erp_kernel.models.service import ServiceType
from erp_modules.client_services.models import ServiceLine


def validate_lines(service_type: ServiceType, lines: Sequence[ServiceLine]) -> None:
    if not lines:
        raise InvalidServiceLineError(None, "a service needs at least one line")

    for index, line in enumerate(lines):
        if line.article_id is None:
            raise InvalidServiceLineError(index, "article is required")
        if isinstance(line.qty, bool) or not isinstance(line.qty, int) or line.qty < 1:
            raise InvalidServiceLineError(index, f"qty must be a positive integer, got {line.qty!r}")
        if Decimal(line.unit_price) < 0:
            raise InvalidServiceLineError(index, "unit price cannot be negative")
        if line.rental_deposit is not None and Decimal(line.rental_deposit) < 0:
            raise InvalidServiceLineError(index, "deposit cannot be negative")

        if service_type is ServiceType.RENTAL:
            if line.rental_start is None or line.rental_end is None:
                raise InvalidServiceLineError(index, "rental period (start and end) is required")
            if line.rental_end < line.rental_start:
                raise InvalidServiceLineError(index, "rental end must not be before rental start")


def subtotal(lines: Sequence[ServiceLine]) -> Decimal:
    return sum((line.line_total for line in lines), Decimal("0"))


def service_total(lines: Sequence[ServiceLine], discount_amount: Decimal) -> Decimal:
    """Subtotal minus discount, never below zero."""
    gross = subtotal(lines)
    discount = Decimal(discount_amount)
    if discount < 0:
        raise InvalidServiceLineError(None, "discount cannot be negative")
    if discount > gross:
        raise InvalidServiceLineError(
            None, f"discount {discount} exceeds subtotal {gross}"
        )
    return max(Decimal("0"), gross - discount)


def rental_window(lines: Sequence[ServiceLine]) -> tuple[date | None, date | None]:
    """Earliest line start and latest line end."""
    starts = [line.rental_start for line in lines if line.rental_start is not None]
    ends = [line.rental_end for line in lines if line.rental_end is not None]
    return (min(starts) if starts else None, max(ends) if ends else None)


def total_deposit(lines: Sequence[ServiceLine]) -> Decimal:
    return sum(
        (Decimal(line.rental_deposit) for line in lines if line.rental_deposit is not None),
        Decimal("0"),
    )
