from datetime import date, datetime, timedelta

import pytest

from orderboard.errors import OrderNotFound, OrderStatusError
from orderboard.extensions import db
from orderboard.models import Client, Order
from orderboard.services.order_repository import OrderQueryCache, SqlOrderRepository
from orderboard.services.order_types import OrderFilters

from conftest import FIXED_NOW, TIMEZONE


def _order(display_number, *, status="received", scheduled_at=None, created_at=FIXED_NOW, client=None, delivery=False):
    order = Order(
        display_number=display_number,
        status=status,
        total_cents=1000,
        scheduled_at=scheduled_at,
        created_at=created_at,
        client_id=client.id if client else None,
        is_delivery=delivery,
    )
    db.session.add(order)
    db.session.commit()
    return order


def _numbers(orders):
    return [order.display_number for order in orders]


class TestDeliveredWindow:
    """Delivered orders created before local midnight drop off the default list."""

    def test_delivered_yesterday_is_hidden(self, repository):
        # 23:59 local on the 17th
        _order(1, status="delivered", created_at=datetime(2026, 10, 18, 2, 59))
        assert repository.list_orders() == []

    def test_delivered_today_is_shown(self, repository):
        # 00:00:01 local on the 18th
        _order(1, status="delivered", created_at=datetime(2026, 10, 18, 3, 0, 1))
        assert _numbers(repository.list_orders()) == [1]

    def test_open_orders_from_yesterday_stay(self, repository):
        _order(1, status="ready", created_at=datetime(2026, 10, 16, 12, 0))
        _order(2, status="cancelled", created_at=datetime(2026, 10, 16, 12, 0))
        assert sorted(_numbers(repository.list_orders())) == [1, 2]


class TestOrdering:

    def test_scheduled_ascending_then_unscheduled_newest_first(self, repository):
        _order(1, scheduled_at=FIXED_NOW + timedelta(hours=3))
        _order(2, scheduled_at=None, created_at=FIXED_NOW - timedelta(hours=2))
        _order(3, scheduled_at=FIXED_NOW + timedelta(hours=1))
        _order(4, scheduled_at=None, created_at=FIXED_NOW - timedelta(hours=1))

        assert _numbers(repository.list_orders()) == [3, 1, 4, 2]

    def test_same_schedule_newest_created_first(self, repository):
        slot = FIXED_NOW + timedelta(hours=1)
        _order(1, scheduled_at=slot, created_at=FIXED_NOW - timedelta(minutes=30))
        _order(2, scheduled_at=slot, created_at=FIXED_NOW - timedelta(minutes=10))
        assert _numbers(repository.list_orders()) == [2, 1]


class TestFilters:

    def test_status_filter(self, repository):
        _order(1, status="received")
        _order(2, status="ready")
        assert _numbers(repository.list_orders(OrderFilters(status="ready"))) == [2]
        assert len(repository.list_orders(OrderFilters(status="all"))) == 2

    def test_unknown_status_rejected(self, repository):
        with pytest.raises(OrderStatusError):
            repository.list_orders(OrderFilters(status="shipped"))

    def test_delivery_filter(self, repository):
        _order(1, delivery=True)
        _order(2, delivery=False)
        assert _numbers(repository.list_orders(OrderFilters(delivery="delivery"))) == [1]
        assert _numbers(repository.list_orders(OrderFilters(delivery="pickup"))) == [2]

    def test_search_by_number_or_client_name(self, repository, customer):
        _order(12, client=customer)
        _order(3)
        _order(120)

        assert sorted(_numbers(repository.list_orders(OrderFilters(search="12")))) == [12, 120]
        assert _numbers(repository.list_orders(OrderFilters(search="  MARIA "))) == [12]

    def test_search_escapes_wildcards(self, repository, db_session):
        db_session.add(Client(name="100% Frango"))
        db_session.commit()
        _order(5)
        assert repository.list_orders(OrderFilters(search="%")) == []

    def test_date_filter_includes_late_backlog(self, repository):
        today = date(2026, 10, 18)
        # Scheduled today (local)
        _order(1, scheduled_at=datetime(2026, 10, 18, 20, 0))
        # Scheduled tomorrow
        _order(2, scheduled_at=datetime(2026, 10, 19, 20, 0))
        # Late from two days ago, still open
        _order(3, scheduled_at=datetime(2026, 10, 16, 15, 0))
        # Late but delivered
        _order(4, status="delivered", scheduled_at=datetime(2026, 10, 16, 15, 0))

        assert _numbers(repository.list_orders(OrderFilters(date=today))) == [3, 1]

    def test_date_range(self, repository):
        _order(1, scheduled_at=datetime(2026, 10, 20, 15, 0))
        _order(2, scheduled_at=datetime(2026, 10, 22, 15, 0))
        filters = OrderFilters(date_from=date(2026, 10, 19), date_to=date(2026, 10, 21))
        assert _numbers(repository.list_orders(filters)) == [1]

    def test_date_filter_bypasses_delivered_window(self, repository):
        _order(1, status="delivered", scheduled_at=datetime(2026, 10, 18, 14, 0), created_at=datetime(2026, 10, 10, 12, 0))
        assert _numbers(repository.list_orders(OrderFilters(date=date(2026, 10, 18)))) == [1]


class TestReads:

    def test_get_order_joins_everything(self, repository, make_draft, customer):
        receipt = repository.complete_sale(make_draft(payments=[("pix", 1000)], client_id=customer.id))
        order = repository.get_order(receipt.order_id)

        assert order.client.name == "Maria Souza"
        assert [line.name for line in order.lines] == ["Frango Assado", "Farofa"]
        assert order.lines[0].is_internal is True
        assert order.lines[1].is_internal is False
        assert order.paid_cents == 1000

    def test_get_order_missing(self, repository):
        with pytest.raises(OrderNotFound):
            repository.get_order("nope")

    def test_upcoming_orders(self, repository):
        _order(1, scheduled_at=FIXED_NOW + timedelta(days=1))
        _order(2, scheduled_at=FIXED_NOW + timedelta(days=5))
        _order(3, status="cancelled", scheduled_at=FIXED_NOW + timedelta(days=1))
        _order(4, scheduled_at=FIXED_NOW + timedelta(hours=1))
        assert _numbers(repository.upcoming_orders(3)) == [4, 1]

    def test_available_units(self, repository, units, products):
        available = repository.available_units(products["chicken"].id)
        assert [unit.id for unit in available] == [u.id for u in units["chicken"]]


class TestWrites:

    def test_change_status_returns_fresh_view(self, repository, make_draft):
        receipt = repository.complete_sale(make_draft())
        order = repository.change_status(receipt.order_id, "preparing")
        assert order.status == "preparing"

    def test_update_order_returns_edited_view(self, repository, make_draft):
        receipt = repository.complete_sale(make_draft())
        draft = make_draft(notes="sem cebola")
        order = repository.update_order(receipt.order_id, draft)
        assert order.notes == "sem cebola"

    def test_link_and_ready(self, repository, make_draft, units):
        receipt = repository.complete_sale(make_draft())
        order = repository.get_order(receipt.order_id)

        line = repository.link_inventory_unit(order.lines[0].id, units["chicken"][0].id)
        assert line.inventory_unit_id == units["chicken"][0].id
        assert repository.check_and_set_ready(receipt.order_id) is True
        assert repository.get_order(receipt.order_id).status == "ready"


class TestQueryCache:

    def _cached_repository(self, ticks):
        cache = OrderQueryCache(ttl_seconds=5, clock=lambda: ticks[0])
        return SqlOrderRepository(TIMEZONE, clock=lambda: FIXED_NOW, cache=cache)

    def test_serves_cached_list_until_ttl(self, db_session):
        ticks = [0.0]
        repository = self._cached_repository(ticks)
        _order(1)
        assert _numbers(repository.list_orders()) == [1]

        # Written behind the repository's back
        _order(2)
        assert _numbers(repository.list_orders()) == [1]

        ticks[0] = 6.0
        assert len(repository.list_orders()) == 2

    def test_writes_invalidate_every_entry(self, db_session, make_draft):
        ticks = [0.0]
        repository = self._cached_repository(ticks)
        repository.list_orders()
        repository.list_orders(OrderFilters(status="ready"))
        assert len(repository.cache) == 2

        receipt = repository.complete_sale(make_draft())
        assert len(repository.cache) == 0
        assert _numbers(repository.list_orders()) == [receipt.display_number]

    def test_failed_write_still_invalidates(self, db_session):
        repository = self._cached_repository([0.0])
        repository.list_orders()
        with pytest.raises(OrderNotFound):
            repository.change_status("missing", "ready")
        assert len(repository.cache) == 0

    def test_zero_ttl_disables_cache(self):
        cache = OrderQueryCache(ttl_seconds=0)
        cache.put(("k",), [])
        assert cache.get(("k",)) is None
        assert len(cache) == 0
