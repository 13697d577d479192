"""Kernel write services."""

from erp_kernel.services.base import BaseService
from erp_kernel.services.ledger_service import LedgerService

__all__ = ["BaseService", "LedgerService"]
