"""Read-only query selectors."""

from erp_kernel.selectors.base import BaseSelector
from erp_kernel.selectors.ledger_selector import LedgerSelector
from erp_kernel.selectors.service_selector import ServiceSelector
from erp_kernel.selectors.worker_selector import WorkerSelector

__all__ = [
    "BaseSelector",
    "LedgerSelector",
    "ServiceSelector",
    "WorkerSelector",
]
