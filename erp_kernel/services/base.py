"""
BaseService -- common constructor for kernel and module services.

Services receive a SQLAlchemy ``Session`` and an injected ``Clock``.  They
flush within the caller's transaction and never commit or roll back the
outer transaction themselves; SAVEPOINTs they open are their own to resolve.

Public operations check their identifiers with ``_require`` and
``_as_uuid`` before touching the session.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy.orm import Session

from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import InvalidIdentifierError, MissingIdentifierError


class BaseService(ABC):
    """Holds the caller's session and clock."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock

    @staticmethod
    def _require(**values: object) -> None:
        """Raise MissingIdentifierError for the first ``None`` value."""
        for name, value in values.items():
            if value is None:
                raise MissingIdentifierError(name)

    @staticmethod
    def _as_uuid(field_name: str, value: object) -> UUID:
        if value is None:
            raise MissingIdentifierError(field_name)
        if isinstance(value, UUID):
            return value
        try:
            return UUID(str(value))
        except ValueError:
            raise InvalidIdentifierError(field_name, value) from None
