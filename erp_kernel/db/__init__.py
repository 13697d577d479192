"""Database layer - engine, base classes, append-only listeners, retry."""

from erp_kernel.db.base import Base, TenantScopedBase, UUIDString
from erp_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from erp_kernel.db.retry import run_with_retry, store_errors

__all__ = [
    "Base",
    "TenantScopedBase",
    "UUIDString",
    "create_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "run_with_retry",
    "session_scope",
    "store_errors",
]
