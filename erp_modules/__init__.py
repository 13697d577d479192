"""
ERP modules: thin domain glue over ``erp_kernel``.

Each module follows the same layout::

    models.py    frozen dataclass DTOs and status enums (no I/O)
    helpers.py   pure functions (no session, no clock)
    service.py   the module's public service, composed over kernel
                 selectors and LedgerService

Modules import from ``erp_kernel`` and never the reverse.
"""
