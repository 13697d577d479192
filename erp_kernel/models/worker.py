"""
Module: erp_kernel.models.worker
Responsibility: ORM models for workers (``ouvriers``) and their salary
    payment history.
Architecture position: Kernel > Models.  Imports from db/base.py only.

Invariants enforced:
    - pay_day is NULL or in 1..28 (CHECK constraint), so every calendar month
      contains it.
    - SalaryPayment rows are append-only (db/immutability.py).
    - period is a "YYYY-MM" string.  No uniqueness on (worker, period).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import TenantScopedBase, UUIDString
from erp_kernel.domain.dtos import SalaryPaymentRecord, WorkerRecord


class WorkerModel(TenantScopedBase):
    """A salaried worker with an optional monthly pay day."""

    __tablename__ = "ouvriers"

    __table_args__ = (
        CheckConstraint(
            "pay_day IS NULL OR (pay_day >= 1 AND pay_day <= 28)",
            name="ck_ouvriers_pay_day_range",
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    cin: Mapped[str | None] = mapped_column(String(20), nullable=True)
    salaire_base: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    joined_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    pay_day: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def to_dto(self) -> WorkerRecord:
        return WorkerRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            name=self.name,
            cin=self.cin,
            salaire_base=self.salaire_base,
            joined_at=self.joined_at,
            pay_day=self.pay_day,
        )

    def __repr__(self) -> str:
        return f"<WorkerModel {self.id} {self.name} pay_day={self.pay_day}>"


class SalaryPaymentModel(TenantScopedBase):
    """A salary payment recorded against one pay period."""

    __tablename__ = "salary_payments"

    __table_args__ = (
        Index("ix_salary_payments_worker_period", "tenant_id", "ouvrier_id", "period"),
    )

    ouvrier_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("ouvriers.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def to_dto(self) -> SalaryPaymentRecord:
        return SalaryPaymentRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            ouvrier_id=self.ouvrier_id,
            amount=self.amount,
            period=self.period,
            paid_at=self.paid_at,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<SalaryPaymentModel {self.id} worker={self.ouvrier_id} period={self.period}>"
