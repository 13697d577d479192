"""
Payroll Domain Models (``erp_modules.payroll.models``).

Frozen value objects returned by ``SalaryService``.  No I/O.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PaymentStatus(str, Enum):
    """
    Salary status of one worker for the current pay cycle.

    NONE covers both "no pay day configured" and "pay day not reached yet".
    """

    PAID = "paid"
    DUE = "due"
    OVERDUE = "overdue"
    NONE = "none"


@dataclass(frozen=True)
class WorkerPaymentState:
    """A worker's row in the payroll overview."""

    worker_id: UUID
    name: str
    pay_day: int | None
    salaire_base: Decimal
    status: PaymentStatus
    period: str | None
    next_payment_date: date | None

    @property
    def needs_payment(self) -> bool:
        return self.status in (PaymentStatus.DUE, PaymentStatus.OVERDUE)
