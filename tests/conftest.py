"""
Pytest fixtures for the ERP reconciliation test suite.

Provides:
- In-memory SQLite engine and session per test (tables + partial unique
  index created from the ORM metadata, append-only listeners registered)
- File-backed SQLite engine for tests that need two independent sessions
- Deterministic clock, tenant ids, and row factories
- captured_logs for asserting on structured log output
- executed_sql for asserting that a call reached the store or not
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

import erp_kernel.models  # noqa: F401  (registers tables on Base.metadata)
from erp_kernel.db.base import Base
from erp_kernel.db.engine import configure_sqlite_engine
from erp_kernel.db.immutability import register_immutability_listeners
from erp_kernel.domain.clock import DeterministicClock
from erp_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from erp_kernel.models.service import (
    ServiceItemModel,
    ServiceModel,
    ServiceStatus,
    ServiceType,
)
from erp_kernel.models.stock_movement import StockMovementModel
from erp_kernel.models.worker import SalaryPaymentModel, WorkerModel
from erp_modules.payroll.service import SalaryService
from erp_modules.rental.service import RentalStockService


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture erp_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, rental_service):
            rental_service.apply_due_rental_starts(tenant_id, today)
            assert any(r["message"] == "rental_starts_applied" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("erp_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = configure_sqlite_engine(create_engine("sqlite:///:memory:"))
    Base.metadata.create_all(eng)
    register_immutability_listeners()
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def executed_sql(engine):
    """
    SQL statements sent to ``engine`` while the test runs.

    Fixture setup may already have executed statements; clear the list
    before the call under test.
    """
    statements: list[str] = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", _record)
    yield statements
    event.remove(engine, "before_cursor_execute", _record)


@pytest.fixture
def file_engine(tmp_path):
    """SQLite on disk, so separate sessions use separate connections."""
    eng = configure_sqlite_engine(
        create_engine(f"sqlite:///{tmp_path / 'erp.db'}")
    )
    Base.metadata.create_all(eng)
    register_immutability_listeners()
    yield eng
    eng.dispose()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def clock():
    """Naive timestamps: SQLite does not keep tzinfo."""
    return DeterministicClock(datetime(2024, 3, 1, 12, 0, 0))


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def rental_service(session, clock):
    return RentalStockService(session, clock=clock)


@pytest.fixture
def salary_service(session, clock):
    return SalaryService(session, clock=clock)


# =============================================================================
# Row factories
# =============================================================================


@pytest.fixture
def make_rental(session, clock):
    """
    Insert a rental service with one item per line.

    Each line is ``(qty, rental_start, rental_end)`` or a dict with
    ``qty``, ``start``, ``end`` and optional ``article_id``.  Lines with
    ``None`` dates are stored as non-eligible items.
    """

    def _make(
        tenant_id: UUID,
        lines,
        status: str = ServiceStatus.CONFIRMED.value,
        service_type: str = ServiceType.RENTAL.value,
    ) -> tuple[ServiceModel, list[ServiceItemModel]]:
        normalized = []
        for line in lines:
            if isinstance(line, dict):
                normalized.append(
                    (
                        line["qty"],
                        line.get("start"),
                        line.get("end"),
                        line.get("article_id") or uuid4(),
                    )
                )
            else:
                qty, start, end = line
                normalized.append((qty, start, end, uuid4()))

        starts = [start for _, start, _, _ in normalized if start is not None]
        ends = [end for _, _, end, _ in normalized if end is not None]
        stamp = clock.tick()

        service = ServiceModel(
            id=uuid4(),
            tenant_id=tenant_id,
            client_id=uuid4(),
            type=service_type,
            status=status,
            rental_start=min(starts) if starts else None,
            rental_end=max(ends) if ends else None,
            rental_deposit=Decimal("0"),
            discount_amount=Decimal("0"),
            total=Decimal("0"),
            created_at=stamp,
        )
        items = [
            ServiceItemModel(
                id=uuid4(),
                tenant_id=tenant_id,
                service_id=service.id,
                article_id=article_id,
                position=position,
                qty=qty,
                unit_price=Decimal("10"),
                rental_start=start,
                rental_end=end,
                created_at=stamp,
            )
            for position, (qty, start, end, article_id) in enumerate(normalized)
        ]
        session.add(service)
        session.add_all(items)
        session.flush()
        return service, items

    return _make


@pytest.fixture
def add_movement(session, clock):
    """Insert a raw ledger row, bypassing LedgerService (legacy fixtures)."""

    def _add(
        tenant_id: UUID,
        article_id: UUID,
        qty_delta: int,
        reason: str,
        ref_table: str | None = None,
        ref_id=None,
    ) -> StockMovementModel:
        row = StockMovementModel(
            tenant_id=tenant_id,
            article_id=article_id,
            qty_delta=qty_delta,
            reason=reason,
            ref_table=ref_table,
            ref_id=str(ref_id) if ref_id is not None else None,
            created_at=clock.tick(),
        )
        session.add(row)
        session.flush()
        return row

    return _add


@pytest.fixture
def make_worker(session):
    def _make(
        tenant_id: UUID,
        name: str = "Worker",
        pay_day: int | None = None,
        salaire_base: Decimal = Decimal("1200.000"),
        joined_at: date | None = None,
    ) -> WorkerModel:
        worker = WorkerModel(
            id=uuid4(),
            tenant_id=tenant_id,
            name=name,
            cin="01234567",
            salaire_base=salaire_base,
            joined_at=joined_at,
            pay_day=pay_day,
        )
        session.add(worker)
        session.flush()
        return worker

    return _make


@pytest.fixture
def add_payment(session, clock):
    def _add(
        tenant_id: UUID, worker_id: UUID, period: str, amount=Decimal("1200.000")
    ) -> SalaryPaymentModel:
        payment = SalaryPaymentModel(
            tenant_id=tenant_id,
            ouvrier_id=worker_id,
            amount=amount,
            period=period,
            paid_at=clock.now(),
            created_at=clock.tick(),
        )
        session.add(payment)
        session.flush()
        return payment

    return _add
