"""
ORM-level append-only enforcement for ledger and payroll history.

Stock movements and salary payments are historical facts.  Corrections are
new rows (a compensating movement, a later payment), never edits.  This
module registers mapper events that fire before SQL is emitted:

    session.flush()
         |
         v
    [before_update] --> _block_*_update() --> ImmutabilityViolationError
         |
    [before_delete] --> _block_*_delete() --> ImmutabilityViolationError

Protected entities:

    Entity              | Immutable          | Table
    --------------------|--------------------|-----------------
    StockMovement       | always             | stock_movements
    SalaryPayment       | always             | salary_payments

Registration is idempotent.  Tests that need to plant corrupt rows may call
unregister_immutability_listeners() and re-register afterwards.

Bulk ``session.execute(update(...))`` bypasses mapper events.  Nothing in
this codebase issues bulk updates against these tables.
"""

from sqlalchemy import event

from erp_kernel.exceptions import ImmutabilityViolationError
from erp_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _violation(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _block_stock_movement_update(mapper, connection, target):
    raise _violation(
        "StockMovement",
        target,
        "UPDATE",
        "Stock movements are append-only; post a compensating movement instead",
    )


def _block_stock_movement_delete(mapper, connection, target):
    raise _violation(
        "StockMovement", target, "DELETE", "Stock movements cannot be deleted"
    )


def _block_salary_payment_update(mapper, connection, target):
    raise _violation(
        "SalaryPayment", target, "UPDATE", "Salary payments cannot be modified"
    )


def _block_salary_payment_delete(mapper, connection, target):
    raise _violation(
        "SalaryPayment", target, "DELETE", "Salary payments cannot be deleted"
    )


def _listeners():
    from erp_kernel.models.stock_movement import StockMovementModel
    from erp_kernel.models.worker import SalaryPaymentModel

    return (
        (StockMovementModel, "before_update", _block_stock_movement_update),
        (StockMovementModel, "before_delete", _block_stock_movement_delete),
        (SalaryPaymentModel, "before_update", _block_salary_payment_update),
        (SalaryPaymentModel, "before_delete", _block_salary_payment_delete),
    )


def register_immutability_listeners() -> None:
    """
    Register all append-only enforcement listeners.

    Safe to call more than once.
    """
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the append-only listeners.

    WARNING: tests only.
    """
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)


def immutability_listeners_registered() -> bool:
    return all(
        event.contains(target, event_name, fn)
        for target, event_name, fn in _listeners()
    )
