"""
Tests for RentalStockService.

Start sweep, expiry sweep, operator returns, the legacy compatibility path,
and the properties the reconciler must keep: idempotence, same-day
ordering, stock conservation, partial returns.
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from erp_kernel.domain.dtos import MovementReason, RefTable
from erp_kernel.exceptions import (
    InvalidIdentifierError,
    ItemNotReturnableError,
    MissingIdentifierError,
    RentalEventAlreadyAppliedError,
    ServiceNotFoundError,
    StateError,
    ValidationError,
)
from erp_kernel.models.service import ServiceModel, ServiceStatus
from erp_kernel.models.stock_movement import StockMovementModel
from erp_kernel.selectors.ledger_selector import LedgerSelector
from erp_modules.rental.config import RentalConfig
from erp_modules.rental.models import RentalItemState, ReturnPath
from erp_modules.rental.service import RentalStockService

START = MovementReason.RENTAL_START.value
RETURN = MovementReason.RENTAL_RETURN.value
ITEMS = RefTable.SERVICE_ITEMS.value

MAR_1 = date(2024, 3, 1)
MAR_3 = date(2024, 3, 3)
MAR_5 = date(2024, 3, 5)
MAR_10 = date(2024, 3, 10)
MAR_20 = date(2024, 3, 20)


def _count(session, reason=None, ref_id=None) -> int:
    stmt = select(func.count()).select_from(StockMovementModel)
    if reason is not None:
        stmt = stmt.where(StockMovementModel.reason == reason)
    if ref_id is not None:
        stmt = stmt.where(StockMovementModel.ref_id == str(ref_id))
    return session.execute(stmt).scalar_one()


def _status(session, service_id) -> str:
    session.expire_all()
    return session.execute(
        select(ServiceModel.status).where(ServiceModel.id == service_id)
    ).scalar_one()


class TestApplyDueRentalStarts:

    def test_starts_due_items(self, rental_service, make_rental, session, tenant_id):
        service, (item,) = make_rental(tenant_id, [(2, MAR_1, MAR_5)])

        result = rental_service.apply_due_rental_starts(tenant_id, MAR_1)

        assert result.started_item_ids == (item.id,)
        assert result.due_count == 1
        stock = LedgerSelector(session).stock_on_hand(tenant_id, item.article_id)
        assert stock == -2

    def test_future_items_not_started(self, rental_service, make_rental, session, tenant_id):
        make_rental(tenant_id, [(1, MAR_10, MAR_20)])
        result = rental_service.apply_due_rental_starts(tenant_id, MAR_5)
        assert result.started_count == 0
        assert _count(session) == 0

    def test_idempotent(self, rental_service, make_rental, session, tenant_id):
        make_rental(tenant_id, [(1, MAR_1, MAR_5), (3, MAR_3, MAR_5)])
        make_rental(tenant_id, [(2, MAR_1, MAR_10)])

        first = rental_service.apply_due_rental_starts(tenant_id, MAR_3)
        rows_after_first = _count(session)
        second = rental_service.apply_due_rental_starts(tenant_id, MAR_3)

        assert first.started_count == 3
        assert second.started_count == 0
        assert second.already_applied_count == 0
        assert _count(session) == rows_after_first == 3

    def test_only_confirmed_rentals(self, rental_service, make_rental, session, tenant_id):
        make_rental(tenant_id, [(1, MAR_1, MAR_5)], status=ServiceStatus.DRAFT.value)
        make_rental(tenant_id, [(1, MAR_1, MAR_5)], status=ServiceStatus.CANCELLED.value)
        make_rental(tenant_id, [(1, MAR_1, MAR_5)], status=ServiceStatus.RETURNED.value)
        rental_service.apply_due_rental_starts(tenant_id, MAR_5)
        assert _count(session) == 0

    def test_items_without_window_ignored(self, rental_service, make_rental, session, tenant_id):
        make_rental(tenant_id, [(1, None, None), (1, MAR_1, None)])
        rental_service.apply_due_rental_starts(tenant_id, MAR_5)
        assert _count(session) == 0

    def test_tenant_scoped(self, rental_service, make_rental, session, tenant_id, other_tenant_id):
        make_rental(other_tenant_id, [(1, MAR_1, MAR_5)])
        result = rental_service.apply_due_rental_starts(tenant_id, MAR_5)
        assert result.due_count == 0
        assert _count(session) == 0

    def test_logs_summary(self, rental_service, make_rental, captured_logs, tenant_id):
        make_rental(tenant_id, [(1, MAR_1, MAR_5)])
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)
        records = [r for r in captured_logs() if r["message"] == "rental_starts_applied"]
        assert records and records[0]["started"] == 1


class TestReturnableItems:

    def test_partial_return_scenario(self, rental_service, make_rental, session, tenant_id):
        """Item A started, item B still scheduled: only A comes back."""
        service, (item_a, item_b) = make_rental(
            tenant_id, [(1, MAR_1, MAR_5), (1, MAR_10, MAR_20)]
        )
        rental_service.apply_due_rental_starts(tenant_id, MAR_3)

        returnable = rental_service.get_returnable_items(tenant_id, service.id)
        assert [v.item_id for v in returnable] == [item_a.id]

        result = rental_service.perform_return(tenant_id, service.id)

        assert result.returned_item_ids == (item_a.id,)
        assert result.outstanding_item_ids == (item_b.id,)
        assert result.service_closed is False
        assert _status(session, service.id) == ServiceStatus.CONFIRMED.value

    def test_empty_when_nothing_started(self, rental_service, make_rental, tenant_id):
        service, _ = make_rental(tenant_id, [(1, MAR_10, MAR_20)])
        assert rental_service.get_returnable_items(tenant_id, service.id) == ()

    def test_unknown_service(self, rental_service, tenant_id):
        with pytest.raises(ServiceNotFoundError):
            rental_service.get_returnable_items(tenant_id, uuid4())

    def test_other_tenant_service_not_visible(self, rental_service, make_rental, other_tenant_id, tenant_id):
        service, _ = make_rental(other_tenant_id, [(1, MAR_1, MAR_5)])
        with pytest.raises(ServiceNotFoundError):
            rental_service.get_returnable_items(tenant_id, service.id)

    def test_item_states(self, rental_service, make_rental, tenant_id):
        service, (started, due, scheduled) = make_rental(
            tenant_id, [(1, MAR_1, MAR_5), (1, MAR_3, MAR_5), (1, MAR_10, MAR_20)]
        )
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)

        states = {
            v.item_id: (v.state, v.returnable)
            for v in rental_service.rental_item_states(tenant_id, service.id, MAR_5)
        }
        assert states[started.id] == (RentalItemState.STARTED, True)
        assert states[due.id] == (RentalItemState.DUE, False)
        assert states[scheduled.id] == (RentalItemState.SCHEDULED, False)


class TestPerformReturn:

    def test_bulk_return_closes_service(self, rental_service, make_rental, session, tenant_id):
        service, items = make_rental(tenant_id, [(1, MAR_1, MAR_5), (2, MAR_1, MAR_5)])
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)

        result = rental_service.perform_return(tenant_id, service.id)

        assert set(result.returned_item_ids) == {i.id for i in items}
        assert result.service_closed is True
        assert result.path is ReturnPath.STRUCTURED
        assert _status(session, service.id) == ServiceStatus.RETURNED.value

    def test_idempotent_on_fully_returned(self, rental_service, make_rental, session, tenant_id):
        service, _ = make_rental(tenant_id, [(1, MAR_1, MAR_5)])
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)
        rental_service.perform_return(tenant_id, service.id)
        rows = _count(session)

        again = rental_service.perform_return(tenant_id, service.id)

        assert again.returned_count == 0
        assert again.service_closed is False
        assert _count(session) == rows
        assert _status(session, service.id) == ServiceStatus.RETURNED.value

    def test_selected_items_only(self, rental_service, make_rental, session, tenant_id):
        service, (first, second) = make_rental(
            tenant_id, [(1, MAR_1, MAR_5), (1, MAR_1, MAR_5)]
        )
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)

        result = rental_service.perform_return(tenant_id, service.id, item_ids=[second.id])

        assert result.returned_item_ids == (second.id,)
        assert result.outstanding_item_ids == (first.id,)
        assert _status(session, service.id) == ServiceStatus.CONFIRMED.value

    def test_non_returnable_ids_are_skipped(self, rental_service, make_rental, session, tenant_id):
        service, (started, scheduled) = make_rental(
            tenant_id, [(1, MAR_1, MAR_5), (1, MAR_10, MAR_20)]
        )
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)
        stranger = uuid4()

        result = rental_service.perform_return(
            tenant_id, service.id, item_ids=[scheduled.id, stranger]
        )

        assert result.returned_count == 0
        assert result.skipped_item_ids == (scheduled.id, stranger)
        assert _count(session, reason=RETURN) == 0

    def test_ids_accepted_as_strings(self, rental_service, make_rental, tenant_id):
        service, (item,) = make_rental(tenant_id, [(1, MAR_1, MAR_5)])
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)
        result = rental_service.perform_return(tenant_id, service.id, item_ids=[str(item.id)])
        assert result.returned_item_ids == (item.id,)


class TestReturnItem:

    def test_returns_single_item(self, rental_service, make_rental, session, tenant_id):
        service, (item,) = make_rental(tenant_id, [(4, MAR_1, MAR_5)])
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)

        result = rental_service.return_item(tenant_id, service.id, item.id)

        assert result.returned_item_ids == (item.id,)
        assert result.service_closed is True
        assert LedgerSelector(session).stock_on_hand(tenant_id, item.article_id) == 0

    def test_already_returned_is_conflict(self, rental_service, make_rental, tenant_id):
        service, (item,) = make_rental(tenant_id, [(1, MAR_1, MAR_5)])
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)
        rental_service.return_item(tenant_id, service.id, item.id)

        with pytest.raises(RentalEventAlreadyAppliedError) as exc_info:
            rental_service.return_item(tenant_id, service.id, item.id)
        assert exc_info.value.reason == RETURN

    def test_never_started_is_state_error(self, rental_service, make_rental, session, tenant_id):
        service, (item,) = make_rental(tenant_id, [(1, MAR_10, MAR_20)])

        with pytest.raises(ItemNotReturnableError) as exc_info:
            rental_service.return_item(tenant_id, service.id, item.id)

        assert isinstance(exc_info.value, StateError)
        assert _count(session) == 0

    def test_item_of_another_service(self, rental_service, make_rental, tenant_id):
        service, _ = make_rental(tenant_id, [(1, MAR_1, MAR_5)])
        _, (foreign,) = make_rental(tenant_id, [(1, MAR_1, MAR_5)])
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)
        with pytest.raises(ItemNotReturnableError):
            rental_service.return_item(tenant_id, service.id, foreign.id)


class TestAutoReturnExpired:

    def test_returns_and_closes_expired(self, rental_service, make_rental, session, tenant_id):
        service, (item,) = make_rental(tenant_id, [(2, MAR_1, MAR_5)])
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)

        result = rental_service.auto_return_expired(tenant_id, MAR_5)

        assert result.services_closed == (service.id,)
        assert result.items_returned == 1
        assert _count(session, reason=RETURN, ref_id=item.id) == 1
        assert _status(session, service.id) == ServiceStatus.RETURNED.value

    def test_not_yet_expired_untouched(self, rental_service, make_rental, session, tenant_id):
        service, _ = make_rental(tenant_id, [(1, MAR_1, MAR_10)])
        rental_service.apply_due_rental_starts(tenant_id, MAR_1)

        result = rental_service.auto_return_expired(tenant_id, MAR_5)

        assert result.services_examined == 0
        assert _count(session, reason=RETURN) == 0

    def test_same_day_start_and_end(self, rental_service, make_rental, session, tenant_id):
        """Start sweep then expiry sweep: exactly one start and one return."""
        service, (item,) = make_rental(tenant_id, [(1, MAR_5, MAR_5)])

        rental_service.apply_due_rental_starts(tenant_id, MAR_5)
        rental_service.auto_return_expired(tenant_id, MAR_5)

        assert _count(session, reason=START, ref_id=item.id) == 1
        assert _count(session, reason=RETURN, ref_id=item.id) == 1
        assert _status(session, service.id) == ServiceStatus.RETURNED.value

    def test_expiry_without_start_does_not_close(self, rental_service, make_rental, session, tenant_id):
        """Return sweep alone cannot return an unstarted item."""
        service, _ = make_rental(tenant_id, [(1, MAR_5, MAR_5)])

        rental_service.auto_return_expired(tenant_id, MAR_5)

        assert _count(session) == 0
        assert _status(session, service.id) == ServiceStatus.CONFIRMED.value

    def test_conservation(self, rental_service, make_rental, add_movement, session, tenant_id):
        article = uuid4()
        add_movement(tenant_id, article, 10, "purchase")
        make_rental(
            tenant_id,
            [
                {"qty": 3, "start": MAR_1, "end": MAR_5, "article_id": article},
                {"qty": 2, "start": MAR_3, "end": MAR_5, "article_id": article},
            ],
        )
        reads = LedgerSelector(session)

        rental_service.apply_due_rental_starts(tenant_id, MAR_3)
        assert reads.stock_on_hand(tenant_id, article) == 5

        rental_service.auto_return_expired(tenant_id, MAR_5)
        assert reads.stock_on_hand(tenant_id, article) == 10


class TestLegacyPath:

    @pytest.fixture
    def legacy_service(self, make_rental, add_movement, tenant_id):
        service, items = make_rental(tenant_id, [(1, MAR_1, MAR_5), (2, MAR_1, MAR_5)])
        for item in items:
            add_movement(
                tenant_id,
                item.article_id,
                -item.qty,
                f"Location #{str(service.id)[:8]}",
                ref_table=RefTable.SERVICES.value,
                ref_id=service.id,
            )
        return service, items

    def test_all_items_returnable_without_start_rows(self, rental_service, legacy_service, tenant_id):
        service, items = legacy_service
        returnable = rental_service.get_returnable_items(tenant_id, service.id)
        assert {v.item_id for v in returnable} == {i.id for i in items}

    def test_legacy_return_writes_structured_rows(self, rental_service, legacy_service, session, tenant_id):
        service, items = legacy_service

        result = rental_service.perform_return(tenant_id, service.id)

        assert result.path is ReturnPath.LEGACY
        assert result.service_closed is True
        assert _count(session, reason=RETURN) == len(items)
        assert rental_service.get_returnable_items(tenant_id, service.id) == ()

    def test_structured_return_excluded_from_legacy_batch(
        self, rental_service, legacy_service, session, tenant_id
    ):
        service, (first, second) = legacy_service
        rental_service.return_item(tenant_id, service.id, first.id)

        remaining = rental_service.get_returnable_items(tenant_id, service.id)

        assert [v.item_id for v in remaining] == [second.id]

    def test_legacy_return_marker_switches_to_structured(
        self, rental_service, legacy_service, add_movement, tenant_id
    ):
        service, items = legacy_service
        add_movement(
            tenant_id,
            items[0].article_id,
            items[0].qty,
            f"location_return #{str(service.id)[:8]}",
            ref_table=RefTable.SERVICES.value,
            ref_id=service.id,
        )
        assert rental_service.get_returnable_items(tenant_id, service.id) == ()

    def test_custom_prefixes(self, session, clock, make_rental, add_movement, tenant_id):
        service, _ = make_rental(tenant_id, [(1, MAR_1, MAR_5)])
        add_movement(
            tenant_id, uuid4(), -1, "Rent out #1", ref_table=RefTable.SERVICES.value, ref_id=service.id
        )
        default = RentalStockService(session, clock=clock)
        custom = RentalStockService(
            session,
            clock=clock,
            config=RentalConfig(legacy_start_prefixes=("rent out #",)),
        )
        assert default.get_returnable_items(tenant_id, service.id) == ()
        assert len(custom.get_returnable_items(tenant_id, service.id)) == 1

    def test_start_sweep_skips_legacy_service(
        self, rental_service, make_rental, add_movement, session, tenant_id
    ):
        article = uuid4()
        add_movement(tenant_id, article, 10, "purchase")
        service, (item,) = make_rental(
            tenant_id, [{"qty": 2, "start": MAR_1, "end": MAR_5, "article_id": article}]
        )
        add_movement(
            tenant_id,
            article,
            -2,
            f"Location #{str(service.id)[:8]}",
            ref_table=RefTable.SERVICES.value,
            ref_id=service.id,
        )
        reads = LedgerSelector(session)

        result = rental_service.apply_due_rental_starts(tenant_id, MAR_3)

        assert result.started_item_ids == ()
        assert result.legacy_item_ids == (item.id,)
        assert result.legacy_count == 1
        assert _count(session, reason=START) == 0
        assert reads.stock_on_hand(tenant_id, article) == 8

        rental_service.perform_return(tenant_id, service.id)
        assert reads.stock_on_hand(tenant_id, article) == 10

    def test_full_pass_restores_legacy_stock(
        self, rental_service, make_rental, add_movement, session, tenant_id
    ):
        article = uuid4()
        add_movement(tenant_id, article, 10, "purchase")
        service, _ = make_rental(
            tenant_id,
            [
                {"qty": 1, "start": MAR_1, "end": MAR_5, "article_id": article},
                {"qty": 3, "start": MAR_3, "end": MAR_5, "article_id": article},
            ],
        )
        add_movement(
            tenant_id,
            article,
            -4,
            f"location_start #{str(service.id)[:8]}",
            ref_table=RefTable.SERVICES.value,
            ref_id=service.id,
        )

        for day in (MAR_1, MAR_3, MAR_5):
            rental_service.apply_due_rental_starts(tenant_id, day)
            rental_service.auto_return_expired(tenant_id, day)

        assert LedgerSelector(session).stock_on_hand(tenant_id, article) == 10
        assert _status(session, service.id) == ServiceStatus.RETURNED.value

    def test_structured_service_still_started_beside_legacy(
        self, rental_service, legacy_service, make_rental, session, tenant_id
    ):
        _, legacy_items = legacy_service
        service, (item,) = make_rental(tenant_id, [(1, MAR_1, MAR_5)])

        result = rental_service.apply_due_rental_starts(tenant_id, MAR_3)

        assert result.started_item_ids == (item.id,)
        assert set(result.legacy_item_ids) == {i.id for i in legacy_items}
        assert _count(session, reason=START) == 1

    def test_item_states_follow_dates(self, rental_service, make_rental, add_movement, tenant_id):
        service, (current, future) = make_rental(
            tenant_id, [(1, MAR_1, MAR_20), (1, MAR_10, MAR_20)]
        )
        add_movement(
            tenant_id,
            current.article_id,
            -1,
            f"Location #{str(service.id)[:8]}",
            ref_table=RefTable.SERVICES.value,
            ref_id=service.id,
        )

        states = {
            v.item_id: v for v in rental_service.rental_item_states(tenant_id, service.id, MAR_3)
        }

        assert states[current.id].state is RentalItemState.STARTED
        assert states[future.id].state is RentalItemState.SCHEDULED
        assert states[future.id].returnable is True


class TestIdentifierValidation:

    @pytest.mark.parametrize(
        "call",
        [
            lambda svc, t, s: svc.apply_due_rental_starts(None, MAR_3),
            lambda svc, t, s: svc.apply_due_rental_starts(t, None),
            lambda svc, t, s: svc.auto_return_expired(None, MAR_3),
            lambda svc, t, s: svc.get_returnable_items(None, s),
            lambda svc, t, s: svc.get_returnable_items(t, None),
            lambda svc, t, s: svc.rental_item_states(t, None, MAR_3),
            lambda svc, t, s: svc.perform_return(None, s),
            lambda svc, t, s: svc.perform_return(t, None),
            lambda svc, t, s: svc.return_item(t, s, None),
            lambda svc, t, s: svc.return_item(None, s, uuid4()),
        ],
    )
    def test_missing_identifier_rejected_before_io(
        self, rental_service, make_rental, executed_sql, tenant_id, call
    ):
        service, _ = make_rental(tenant_id, [(1, MAR_1, MAR_5)])
        executed_sql.clear()

        with pytest.raises(MissingIdentifierError):
            call(rental_service, tenant_id, service.id)

        assert executed_sql == []

    def test_malformed_item_ids_are_validation_errors(
        self, rental_service, make_rental, executed_sql, session, tenant_id
    ):
        service, (item,) = make_rental(tenant_id, [(1, MAR_1, MAR_5)])
        rental_service.apply_due_rental_starts(tenant_id, MAR_3)
        executed_sql.clear()

        with pytest.raises(InvalidIdentifierError) as exc_info:
            rental_service.perform_return(tenant_id, service.id, [str(item.id), "not-a-uuid"])

        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.field_name == "item_ids"
        assert executed_sql == []
        assert _count(session, reason=RETURN) == 0

    def test_none_inside_item_ids(self, rental_service, make_rental, tenant_id):
        service, _ = make_rental(tenant_id, [(1, MAR_1, MAR_5)])

        with pytest.raises(MissingIdentifierError):
            rental_service.perform_return(tenant_id, service.id, [None])

    def test_malformed_item_id(self, rental_service, make_rental, tenant_id):
        service, _ = make_rental(tenant_id, [(1, MAR_1, MAR_5)])

        with pytest.raises(InvalidIdentifierError):
            rental_service.return_item(tenant_id, service.id, "12")
