"""
Module: erp_kernel.db.retry
Responsibility: Translate driver-level store failures into TransientStoreError
    and retry transient failures a bounded number of times.
Architecture position: Kernel > DB.  Imports exceptions and logging only.

Invariants enforced:
    - IntegrityError is NEVER translated or retried here.  A uniqueness
      violation on the ledger means "already applied"; callers handle it.
    - Only OperationalError and invalidated connections are transient.
      ProgrammingError, DataError and other statement faults propagate as-is.
    - Only TransientStoreError triggers a retry, and at most ``attempts`` runs
      of the operation happen in total.

Failure modes:
    - TransientStoreError re-raised after the last attempt.
"""

import time
from contextlib import contextmanager
from typing import Callable, Generator, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from erp_kernel.exceptions import TransientStoreError
from erp_kernel.logging_config import get_logger

logger = get_logger("db.retry")

T = TypeVar("T")


@contextmanager
def store_errors(operation: str) -> Generator[None, None, None]:
    """
    Re-raise operational driver errors as TransientStoreError.

    Other DBAPI errors propagate unchanged.

    Usage:
        with store_errors("find_due_rental_items"):
            rows = session.execute(stmt).all()
    """
    try:
        yield
    except IntegrityError:
        raise
    except DBAPIError as exc:
        if not isinstance(exc, OperationalError) and not exc.connection_invalidated:
            raise
        logger.warning(
            "store_operation_failed",
            extra={"operation": operation, "error": str(exc.orig or exc)},
        )
        raise TransientStoreError(operation, str(exc.orig or exc)) from exc


def run_with_retry(
    operation: Callable[[], T],
    *,
    attempts: int = 3,
    backoff_seconds: float = 0.2,
    on_retry: Callable[[], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation``, retrying on TransientStoreError only.

    Args:
        operation: Zero-argument callable performing the store work.
        attempts: Total number of runs allowed (>= 1).
        backoff_seconds: Linear backoff unit between attempts.
        on_retry: Hook run before each retry (typically ``session.rollback``).
        sleep: Injected for tests.

    Returns:
        Whatever ``operation`` returns.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except TransientStoreError as exc:
            if attempt == attempts:
                raise
            logger.warning(
                "transient_store_error_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": attempts,
                    "operation": exc.operation,
                },
            )
            if on_retry is not None:
                on_retry()
            sleep(backoff_seconds * attempt)

    raise AssertionError("unreachable")
