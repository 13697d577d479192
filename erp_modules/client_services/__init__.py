"""
Client Services Module (``erp_modules.client_services``).

Books rental and sale services.  Sales take stock out at booking; rentals
only record their window, and the rental start sweep moves the stock later.
"""

from erp_modules.client_services.models import BookedService, ServiceLine
from erp_modules.client_services.service import ServiceBookingService

__all__ = ["BookedService", "ServiceBookingService", "ServiceLine"]
