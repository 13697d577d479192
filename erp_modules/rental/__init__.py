"""
Rental Module (``erp_modules.rental``).

Rental stock reconciliation over the movement ledger: due-date start sweep,
expiry sweep, and operator returns.  Per-item state is never stored; it is
derived from ``rental_start`` / ``rental_return`` rows each time.
"""

from erp_modules.rental.config import RentalConfig
from erp_modules.rental.models import (
    AutoReturnResult,
    RentalItemState,
    RentalItemView,
    RentalReturnResult,
    RentalStartResult,
    ReturnPath,
)
from erp_modules.rental.service import RentalStockService

__all__ = [
    "AutoReturnResult",
    "RentalConfig",
    "RentalItemState",
    "RentalItemView",
    "RentalReturnResult",
    "RentalStartResult",
    "RentalStockService",
    "ReturnPath",
]
