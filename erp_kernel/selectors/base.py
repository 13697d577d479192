"""
Module: erp_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/dtos.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses or plain
      values, never ORM instances.
    - Tenant scoping: every query filters on the tenant_id argument.
    - Driver failures surface as TransientStoreError (db/retry.store_errors).
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    The caller owns the session and its transaction scope.
    """

    def __init__(self, session: Session):
        self.session = session
