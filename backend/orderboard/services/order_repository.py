# Overview: Repository boundary between the board/builder and the order store, plus the SQL implementation.

"""
Order Repository

The board, the linking flow and the builder only ever talk to an
OrderRepository. Two implementations exist:

    SqlOrderRepository   in-process, over db.session (routes, CLI, tests)
    HttpOrderRepository  remote, over the JSON API (orderboard.client)

Contract rules:
- Every failure is raised as a typed OrderBoardError; nothing is retried
- Reads return detached views (OrderView), never ORM rows
- list_orders() results may be served from a short-lived query cache; every
  write through the repository drops the whole cache (never patched)
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import String, and_, cast, func, or_

from ..extensions import db
from ..models import Client, Order
from orderboard.time_utils import local_date, local_day_bounds, utcnow
from . import inventory_unit_service, order_store
from .order_status import DELIVERED, TERMINAL_STATUSES, validate_status
from .order_types import (
    InventoryUnitView,
    OrderDraft,
    OrderFilters,
    OrderLineView,
    OrderView,
    SaleReceipt,
)


logger = logging.getLogger(__name__)

UPCOMING_DAYS = 3


class OrderRepository(ABC):
    """Call contract of the order store."""

    @abstractmethod
    def list_orders(self, filters: Optional[OrderFilters] = None) -> list[OrderView]:
        """Orders joined with client, lines and payments; scheduled asc (nulls last), created desc."""

    @abstractmethod
    def get_order(self, order_id: str) -> OrderView:
        ...

    @abstractmethod
    def change_status(self, order_id: str, status: str) -> OrderView:
        """Single-field status update; re-applying the current status succeeds."""

    @abstractmethod
    def complete_sale(self, draft: OrderDraft) -> SaleReceipt:
        """Create header, lines and payments atomically."""

    @abstractmethod
    def update_order(self, order_id: str, draft: OrderDraft) -> OrderView:
        """Replace lines, schedule and delivery info. Payments are untouched."""

    @abstractmethod
    def available_units(self, catalog_product_id: int) -> list[InventoryUnitView]:
        ...

    @abstractmethod
    def create_unit(
        self,
        catalog_product_id: int,
        weight_grams: int,
        sale_price_cents: Optional[int] = None,
        scale_barcode: Optional[int] = None,
    ) -> InventoryUnitView:
        ...

    @abstractmethod
    def link_inventory_unit(self, line_id: int, unit_id: int) -> OrderLineView:
        ...

    @abstractmethod
    def check_and_set_ready(self, order_id: str) -> bool:
        """Advance to ready if every internal line is linked. True if the status changed."""

    @abstractmethod
    def upcoming_orders(self, days: int = UPCOMING_DAYS) -> list[OrderView]:
        ...


class OrderQueryCache:
    """
    Filter-keyed cache of list_orders() results.

    Entries expire after ttl_seconds. A ttl of 0 disables caching.
    """

    def __init__(self, ttl_seconds: float = 5.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple, tuple[float, list[OrderView]]] = {}
        self._lock = threading.Lock()

    def get(self, key: tuple) -> Optional[list[OrderView]]:
        if self.ttl_seconds <= 0:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, orders = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            return list(orders)

    def put(self, key: tuple, orders: list[OrderView]) -> None:
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock(), list(orders))

    def invalidate(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SqlOrderRepository(OrderRepository):
    """
    In-process repository over the Flask-SQLAlchemy session.

    Needs an application context. ``clock`` returns UTC-naive "now" and is
    injectable so the delivered-today window can be tested.
    """

    def __init__(
        self,
        timezone: str = "America/Sao_Paulo",
        *,
        clock: Callable[[], datetime] = utcnow,
        cache: Optional[OrderQueryCache] = None,
    ):
        self.timezone = timezone
        self.clock = clock
        self.cache = cache if cache is not None else OrderQueryCache()

    # -- reads ---------------------------------------------------------------

    def list_orders(self, filters: Optional[OrderFilters] = None) -> list[OrderView]:
        filters = filters or OrderFilters()
        now = self.clock()
        today = local_date(now, self.timezone)

        key = filters.cache_key() + (today,)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        orders = self._query(filters, now, today)
        self.cache.put(key, orders)
        return orders

    def _query(self, filters: OrderFilters, now: datetime, today) -> list[OrderView]:
        query = db.session.query(Order).options(*order_store.ORDER_LOAD_OPTIONS)

        status = filters.status_filter
        if status:
            validate_status(status)
            query = query.filter(Order.status == status)

        if filters.delivery == "delivery":
            query = query.filter(Order.is_delivery.is_(True))
        elif filters.delivery == "pickup":
            query = query.filter(Order.is_delivery.is_(False))

        term = filters.search_term
        if term:
            query = query.outerjoin(Client, Order.client_id == Client.id).filter(
                or_(
                    cast(Order.display_number, String).contains(term, autoescape=True),
                    func.lower(Client.name).contains(term, autoescape=True),
                )
            )

        if filters.has_date_filter:
            start, end = local_day_bounds(*filters.date_range, self.timezone)
            scheduled_in_range = and_(Order.scheduled_at >= start, Order.scheduled_at <= end)
            late_backlog = and_(Order.scheduled_at < now, Order.status.notin_(TERMINAL_STATUSES))
            query = query.filter(or_(scheduled_in_range, late_backlog))
        else:
            # Delivered history before today (local) stays out of the board
            day_start, _ = local_day_bounds(today, today, self.timezone)
            query = query.filter(or_(Order.status != DELIVERED, Order.created_at >= day_start))

        rows = query.order_by(
            Order.scheduled_at.is_(None),
            Order.scheduled_at.asc(),
            Order.created_at.desc(),
        ).all()
        return [OrderView.from_model(order) for order in rows]

    def get_order(self, order_id: str) -> OrderView:
        return OrderView.from_model(order_store.load_order(order_id))

    def upcoming_orders(self, days: int = UPCOMING_DAYS) -> list[OrderView]:
        today = local_date(self.clock(), self.timezone)
        start, end = local_day_bounds(today, today + timedelta(days=days), self.timezone)
        rows = (
            db.session.query(Order)
            .options(*order_store.ORDER_LOAD_OPTIONS)
            .filter(
                Order.scheduled_at >= start,
                Order.scheduled_at <= end,
                Order.status.notin_(TERMINAL_STATUSES),
            )
            .order_by(Order.scheduled_at.asc(), Order.created_at.desc())
            .all()
        )
        return [OrderView.from_model(order) for order in rows]

    def available_units(self, catalog_product_id: int) -> list[InventoryUnitView]:
        units = inventory_unit_service.list_units(catalog_product_id=catalog_product_id)
        return [InventoryUnitView.from_model(unit) for unit in units]

    # -- writes --------------------------------------------------------------

    def _write(self, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        finally:
            self.cache.invalidate()

    def change_status(self, order_id: str, status: str) -> OrderView:
        self._write(order_store.update_order_status, order_id, status)
        return self.get_order(order_id)

    def complete_sale(self, draft: OrderDraft) -> SaleReceipt:
        return self._write(order_store.complete_sale, **draft.to_rpc())

    def update_order(self, order_id: str, draft: OrderDraft) -> OrderView:
        rpc = draft.to_rpc()
        self._write(order_store.update_order, order_id, rpc["sale"], rpc["items"])
        return self.get_order(order_id)

    def create_unit(
        self,
        catalog_product_id: int,
        weight_grams: int,
        sale_price_cents: Optional[int] = None,
        scale_barcode: Optional[int] = None,
    ) -> InventoryUnitView:
        unit = self._write(
            inventory_unit_service.create_unit,
            catalog_product_id=catalog_product_id,
            weight_grams=weight_grams,
            sale_price_cents=sale_price_cents,
            scale_barcode=scale_barcode,
        )
        return InventoryUnitView.from_model(unit)

    def link_inventory_unit(self, line_id: int, unit_id: int) -> OrderLineView:
        line = self._write(inventory_unit_service.bind_unit_to_line, line_id, unit_id)
        return OrderLineView.from_model(line)

    def check_and_set_ready(self, order_id: str) -> bool:
        return self._write(order_store.check_and_set_ready, order_id)
