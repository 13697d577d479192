"""
Module: erp_kernel.db.base
Responsibility: Declarative base for every ERP table: UUID primary keys
    stored as text, one column-type policy, and the tenant/created_at pair
    that every business row carries.
Architecture position: Kernel > DB.  Lowest import target in the kernel;
    MUST NOT import from models/, services/, selectors/ or outer layers.

Invariants enforced:
    - Identifiers are uuid4 values, stored as 36-character strings so the
      same schema runs on PostgreSQL and SQLite.
    - Money columns are Numeric(15, 3) (dinars with millimes), never float.
    - Every business table has a NOT NULL, indexed ``tenant_id``.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID bound as ``str(value)`` and loaded back as ``uuid.UUID``."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(15, 3),
        datetime: DateTime(timezone=True),
        date: Date,
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TenantScopedBase(Base):
    """
    Abstract base for tenant-owned rows.

    Queries in the kernel always filter on ``tenant_id``.  ``created_at``
    falls back to the server clock but services set it from their injected
    Clock, which keeps ledger ordering deterministic in tests.
    """

    __abstract__ = True

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
