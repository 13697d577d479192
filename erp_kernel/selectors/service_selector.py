"""
Module: erp_kernel.selectors.service_selector
Responsibility: Typed read queries over ``services`` and ``service_items``
    used by the rental reconciler and the booking module.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only confirmed rental services are candidates for reconciliation.
    - Rental-eligible items have both rental_start and rental_end set; the
      other items of a rental service are never touched.
    - Results are ordered deterministically (service creation, then line
      position) so repeated passes visit items in the same order.

Failure modes:
    - ServiceNotFoundError from get_service() for an unknown id or one owned
      by another tenant.
    - TransientStoreError on any driver failure.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from erp_kernel.db.retry import store_errors
from erp_kernel.domain.dtos import ServiceItemRecord, ServiceRecord
from erp_kernel.exceptions import ServiceNotFoundError
from erp_kernel.models.service import (
    ServiceItemModel,
    ServiceModel,
    ServiceStatus,
    ServiceType,
)
from erp_kernel.selectors.base import BaseSelector


class ServiceSelector(BaseSelector):
    """Read access to services and their lines."""

    def get_service(self, tenant_id: UUID, service_id: UUID) -> ServiceRecord:
        stmt = select(ServiceModel).where(
            ServiceModel.tenant_id == tenant_id,
            ServiceModel.id == service_id,
        )
        with store_errors("get_service"):
            row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise ServiceNotFoundError(str(service_id))
        return row.to_dto()

    def confirmed_rentals(
        self,
        tenant_id: UUID,
        ending_on_or_before: date | None = None,
    ) -> tuple[ServiceRecord, ...]:
        """Confirmed rental services, optionally only those whose window has ended."""
        stmt = select(ServiceModel).where(
            ServiceModel.tenant_id == tenant_id,
            ServiceModel.type == ServiceType.RENTAL.value,
            ServiceModel.status == ServiceStatus.CONFIRMED.value,
        )
        if ending_on_or_before is not None:
            stmt = stmt.where(
                ServiceModel.rental_end.is_not(None),
                ServiceModel.rental_end <= ending_on_or_before,
            )
        stmt = stmt.order_by(ServiceModel.created_at, ServiceModel.id)
        with store_errors("confirmed_rentals"):
            rows = self.session.execute(stmt).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def find_due_rental_items(
        self, tenant_id: UUID, today: date
    ) -> tuple[ServiceItemRecord, ...]:
        """Eligible items of confirmed rentals whose start date has arrived."""
        stmt = (
            select(ServiceItemModel)
            .join(ServiceModel, ServiceItemModel.service_id == ServiceModel.id)
            .where(
                ServiceModel.tenant_id == tenant_id,
                ServiceItemModel.tenant_id == tenant_id,
                ServiceModel.type == ServiceType.RENTAL.value,
                ServiceModel.status == ServiceStatus.CONFIRMED.value,
                ServiceItemModel.rental_start.is_not(None),
                ServiceItemModel.rental_end.is_not(None),
                ServiceItemModel.rental_start <= today,
            )
            .order_by(
                ServiceModel.created_at,
                ServiceModel.id,
                ServiceItemModel.position,
            )
        )
        with store_errors("find_due_rental_items"):
            rows = self.session.execute(stmt).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def rental_items(
        self, tenant_id: UUID, service_id: UUID
    ) -> tuple[ServiceItemRecord, ...]:
        """Rental-eligible lines of one service, in line order."""
        stmt = (
            select(ServiceItemModel)
            .where(
                ServiceItemModel.tenant_id == tenant_id,
                ServiceItemModel.service_id == service_id,
                ServiceItemModel.rental_start.is_not(None),
                ServiceItemModel.rental_end.is_not(None),
            )
            .order_by(ServiceItemModel.position)
        )
        with store_errors("rental_items"):
            rows = self.session.execute(stmt).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def service_items(
        self, tenant_id: UUID, service_id: UUID
    ) -> tuple[ServiceItemRecord, ...]:
        stmt = (
            select(ServiceItemModel)
            .where(
                ServiceItemModel.tenant_id == tenant_id,
                ServiceItemModel.service_id == service_id,
            )
            .order_by(ServiceItemModel.position)
        )
        with store_errors("service_items"):
            rows = self.session.execute(stmt).scalars().all()
        return tuple(row.to_dto() for row in rows)
