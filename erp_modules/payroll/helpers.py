"""
Payroll Pure Functions (``erp_modules.payroll.helpers``).

Responsibility
--------------
Calendar arithmetic for the monthly salary cycle.  A worker with pay day
``d`` owes the salary of period ``YYYY-MM`` from day ``d`` of that month
until day ``d - 1`` of the next one.

Architecture
------------
No I/O, no session, no clock.  ``today`` is always an argument.

Invariants
----------
- ``pay_day`` is an int in 1..28, so it exists in every month.  Anything
  else raises ``InvalidPayDayError``; values are never clamped.
- Periods are zero-padded ``YYYY-MM`` strings.

Examples
--------
>>> from datetime import date
>>> payment_cycle(date(2024, 2, 5), 10)
'2024-01'
>>> payment_cycle(date(2024, 1, 5), 10)
'2023-12'
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Protocol
from uuid import UUID

from erp_kernel.exceptions import InvalidPayDayError
from erp_modules.payroll.models import PaymentStatus

MIN_PAY_DAY = 1
MAX_PAY_DAY = 28


class _HasPayDay(Protocol):
    id: UUID
    pay_day: int | None


class _HasPeriod(Protocol):
    ouvrier_id: UUID
    period: str


def validate_pay_day(pay_day: object) -> int:
    """Return ``pay_day`` unchanged if it is an int in 1..28."""
    if isinstance(pay_day, bool) or not isinstance(pay_day, int):
        raise InvalidPayDayError(pay_day)
    if not MIN_PAY_DAY <= pay_day <= MAX_PAY_DAY:
        raise InvalidPayDayError(pay_day)
    return pay_day


def format_period(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def calendar_period(on_date: date) -> str:
    """The calendar month of ``on_date`` as ``YYYY-MM``."""
    return format_period(on_date.year, on_date.month)


def payment_cycle(on_date: date, pay_day: int) -> str:
    """
    Pay period that ``on_date`` falls in.

    Before the pay day the previous month's cycle is still open; January
    rolls back to December of the previous year.
    """
    validate_pay_day(pay_day)
    if on_date.day < pay_day:
        if on_date.month == 1:
            return format_period(on_date.year - 1, 12)
        return format_period(on_date.year, on_date.month - 1)
    return calendar_period(on_date)


def next_payment_date(worker: _HasPayDay, today: date) -> date | None:
    """
    Next pay day on or after ``today``.

    ``None`` when the worker has no pay day.
    """
    if worker.pay_day is None:
        return None
    pay_day = validate_pay_day(worker.pay_day)
    if today.day <= pay_day:
        return date(today.year, today.month, pay_day)
    if today.month == 12:
        return date(today.year + 1, 1, pay_day)
    return date(today.year, today.month + 1, pay_day)


def payment_status(
    worker: _HasPayDay,
    payments: Iterable[_HasPeriod],
    today: date,
) -> PaymentStatus:
    """
    Status of ``worker`` for the cycle containing ``today``.

    ``payments`` may include other workers' rows; only this worker's count.
    """
    if worker.pay_day is None:
        return PaymentStatus.NONE

    period = payment_cycle(today, worker.pay_day)
    if any(p.ouvrier_id == worker.id and p.period == period for p in payments):
        return PaymentStatus.PAID
    if today.day > worker.pay_day:
        return PaymentStatus.OVERDUE
    if today.day == worker.pay_day:
        return PaymentStatus.DUE
    return PaymentStatus.NONE
