"""
erp_services -- top-level pipelines composed over kernel and modules.

``reconcile_tenant`` is the one named reconciliation pipeline: rental start
sweep, then expiry sweep, then a summary.  Background call sites use
``reconcile_tenant_best_effort``, which never raises.
"""

from erp_services.reconciliation_orchestrator import (
    ReconciliationSummary,
    TenantReconciler,
    reconcile_tenant,
    reconcile_tenant_best_effort,
)

__all__ = [
    "ReconciliationSummary",
    "TenantReconciler",
    "reconcile_tenant",
    "reconcile_tenant_best_effort",
]
