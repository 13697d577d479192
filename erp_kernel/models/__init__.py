"""ORM models for the ERP kernel."""

from erp_kernel.models.service import (
    ServiceItemModel,
    ServiceModel,
    ServiceStatus,
    ServiceType,
)
from erp_kernel.models.stock_movement import StockMovementModel
from erp_kernel.models.worker import SalaryPaymentModel, WorkerModel

__all__ = [
    "SalaryPaymentModel",
    "ServiceItemModel",
    "ServiceModel",
    "ServiceStatus",
    "ServiceType",
    "StockMovementModel",
    "WorkerModel",
]
