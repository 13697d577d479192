"""
Module: erp_kernel.selectors.worker_selector
Responsibility: Read queries over workers and their salary payments.
Architecture position: Kernel > Selectors.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from erp_kernel.db.retry import store_errors
from erp_kernel.domain.dtos import SalaryPaymentRecord, WorkerRecord
from erp_kernel.exceptions import WorkerNotFoundError
from erp_kernel.models.worker import SalaryPaymentModel, WorkerModel
from erp_kernel.selectors.base import BaseSelector


class WorkerSelector(BaseSelector):

    def get_worker(self, tenant_id: UUID, worker_id: UUID) -> WorkerRecord:
        stmt = select(WorkerModel).where(
            WorkerModel.tenant_id == tenant_id,
            WorkerModel.id == worker_id,
        )
        with store_errors("get_worker"):
            row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise WorkerNotFoundError(str(worker_id))
        return row.to_dto()

    def list_workers(self, tenant_id: UUID) -> tuple[WorkerRecord, ...]:
        stmt = (
            select(WorkerModel)
            .where(WorkerModel.tenant_id == tenant_id)
            .order_by(WorkerModel.name, WorkerModel.id)
        )
        with store_errors("list_workers"):
            rows = self.session.execute(stmt).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def payments(
        self,
        tenant_id: UUID,
        worker_ids: Iterable[UUID] | None = None,
        period: str | None = None,
    ) -> tuple[SalaryPaymentRecord, ...]:
        """Payments for the tenant, optionally narrowed by worker and period."""
        stmt = select(SalaryPaymentModel).where(
            SalaryPaymentModel.tenant_id == tenant_id
        )
        if worker_ids is not None:
            ids = list(worker_ids)
            if not ids:
                return ()
            stmt = stmt.where(SalaryPaymentModel.ouvrier_id.in_(ids))
        if period is not None:
            stmt = stmt.where(SalaryPaymentModel.period == period)
        stmt = stmt.order_by(SalaryPaymentModel.created_at, SalaryPaymentModel.id)
        with store_errors("salary_payments"):
            rows = self.session.execute(stmt).scalars().all()
        return tuple(row.to_dto() for row in rows)
