"""
Payroll Module Service (``erp_modules.payroll.service``).

Responsibility
--------------
Store-backed salary operations: configure a worker's pay day, record a
payment against the current cycle, and list every worker's status.  The
calendar rules live in ``helpers``; this class only loads and persists.

Invariants enforced
-------------------
* Identifiers and ``pay_day`` are validated before any I/O.
* Salary payments are appended, never edited (kernel listeners).
* Flush only; the caller owns commit and rollback.

Failure modes
-------------
* ``MissingIdentifierError`` when a required identifier or date is ``None``.
* ``InvalidPayDayError`` for a pay day outside 1..28.
* ``WorkerNotFoundError`` for an unknown worker or one from another tenant.
* ``ValidationError`` for a non-positive payment amount.
* ``TransientStoreError`` on driver failures.

Usage::

    service = SalaryService(session, clock=clock)
    service.set_pay_day(tenant_id, worker_id, 15)
    service.record_payment(tenant_id, worker_id, today=date(2024, 3, 16))
    [s.status for s in service.worker_statuses(tenant_id, today)]
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.db.retry import store_errors
from erp_kernel.domain.clock import Clock
from erp_kernel.domain.dtos import SalaryPaymentRecord, WorkerRecord
from erp_kernel.exceptions import ValidationError, WorkerNotFoundError
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.models.worker import SalaryPaymentModel, WorkerModel
from erp_kernel.selectors.worker_selector import WorkerSelector
from erp_kernel.services.base import BaseService
from erp_modules.payroll.helpers import (
    calendar_period,
    next_payment_date,
    payment_cycle,
    payment_status,
    validate_pay_day,
)
from erp_modules.payroll.models import PaymentStatus, WorkerPaymentState

logger = get_logger("modules.payroll.service")


class SalaryService(BaseService):
    """Salary cycle operations for one tenant at a time."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._workers = WorkerSelector(session)

    def _load_worker(self, tenant_id: UUID, worker_id: UUID) -> WorkerModel:
        stmt = select(WorkerModel).where(
            WorkerModel.tenant_id == tenant_id,
            WorkerModel.id == worker_id,
        )
        with store_errors("load_worker"):
            row = self._session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise WorkerNotFoundError(str(worker_id))
        return row

    def set_pay_day(
        self, tenant_id: UUID, worker_id: UUID, pay_day: int | None
    ) -> WorkerRecord:
        """Set or clear (``None``) a worker's monthly pay day."""
        self._require(tenant_id=tenant_id, worker_id=worker_id)
        if pay_day is not None:
            validate_pay_day(pay_day)

        worker = self._load_worker(tenant_id, worker_id)
        previous = worker.pay_day
        worker.pay_day = pay_day
        with store_errors("set_pay_day"):
            self._session.flush()

        logger.info(
            "worker_pay_day_set",
            extra={
                "tenant_id": str(tenant_id),
                "worker_id": str(worker_id),
                "previous_pay_day": previous,
                "pay_day": pay_day,
            },
        )
        return worker.to_dto()

    def record_payment(
        self,
        tenant_id: UUID,
        worker_id: UUID,
        today: date,
        amount: Decimal | None = None,
        notes: str | None = None,
    ) -> SalaryPaymentRecord:
        """
        Append a payment for the cycle containing ``today``.

        Workers without a pay day are paid against the calendar month.
        ``amount`` defaults to the worker's base salary.
        """
        self._require(tenant_id=tenant_id, worker_id=worker_id, today=today)
        worker = self._load_worker(tenant_id, worker_id)
        if worker.pay_day is not None:
            period = payment_cycle(today, worker.pay_day)
        else:
            period = calendar_period(today)

        paid = Decimal(amount) if amount is not None else worker.salaire_base
        if paid is None or paid <= 0:
            raise ValidationError(
                f"Payment amount must be positive, got {paid!r} for worker {worker_id}"
            )

        with LogContext.bind(tenant_id=tenant_id, worker_id=worker_id):
            payment = SalaryPaymentModel(
                tenant_id=tenant_id,
                ouvrier_id=worker.id,
                amount=paid,
                period=period,
                paid_at=self._clock.now(),
                notes=notes,
                created_at=self._clock.now(),
            )
            with store_errors("record_salary_payment"):
                self._session.add(payment)
                self._session.flush()

            logger.info(
                "salary_payment_recorded",
                extra={"period": period, "amount": str(paid)},
            )
        return payment.to_dto()

    def worker_statuses(
        self, tenant_id: UUID, today: date
    ) -> tuple[WorkerPaymentState, ...]:
        """Every worker with status and next pay date, ordered by name."""
        self._require(tenant_id=tenant_id, today=today)
        workers = self._workers.list_workers(tenant_id)
        payments = self._workers.payments(tenant_id, worker_ids=[w.id for w in workers])

        states = []
        for worker in workers:
            period = (
                payment_cycle(today, worker.pay_day)
                if worker.pay_day is not None
                else None
            )
            states.append(
                WorkerPaymentState(
                    worker_id=worker.id,
                    name=worker.name,
                    pay_day=worker.pay_day,
                    salaire_base=worker.salaire_base,
                    status=payment_status(worker, payments, today),
                    period=period,
                    next_payment_date=next_payment_date(worker, today),
                )
            )

        logger.debug(
            "worker_statuses_computed",
            extra={
                "tenant_id": str(tenant_id),
                "workers": len(states),
                "overdue": sum(1 for s in states if s.status == PaymentStatus.OVERDUE),
            },
        )
        return tuple(states)

    def workers_needing_payment(
        self, tenant_id: UUID, today: date
    ) -> tuple[WorkerPaymentState, ...]:
        """Workers whose status is ``due`` or ``overdue``."""
        self._require(tenant_id=tenant_id, today=today)
        return tuple(s for s in self.worker_statuses(tenant_id, today) if s.needs_payment)
