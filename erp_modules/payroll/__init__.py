"""
Payroll Module (``erp_modules.payroll``).

Salary due-cycle computation for workers paid once a month on a fixed pay
day, plus payment recording.  The cycle arithmetic in ``helpers`` is pure;
``SalaryService`` adds the store lookups.
"""

from erp_modules.payroll.helpers import (
    calendar_period,
    next_payment_date,
    payment_cycle,
    payment_status,
    validate_pay_day,
)
from erp_modules.payroll.models import PaymentStatus, WorkerPaymentState
from erp_modules.payroll.service import SalaryService

__all__ = [
    "PaymentStatus",
    "SalaryService",
    "WorkerPaymentState",
    "calendar_period",
    "next_payment_date",
    "payment_cycle",
    "payment_status",
    "validate_pay_day",
]
