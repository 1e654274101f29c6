# Overview: Kanban board model; columns/tabs of order cards, drop handling and optimistic status writes.

"""
Kanban Board

Columns are the four board statuses (received, preparing, ready, delivered).
The mobile layout shows the same cards as tabs: picking a tab filters, it
never transitions.

Input is a neutral intent, (order_id, target_status). Pointer geometry is
translated into that intent by closest_center() before it reaches the
board, so nothing here depends on a drag library.

Drop rules:
- target must be a board column
- target equal to the displayed status: no-op, no repository call
- delivered/cancelled cards do not move
- anything else: overlay first, then the write is submitted

Writes go through ``submit(fn, *args) -> Future``. The default runs the
write inline; pass an executor's submit to run writes off the caller's
thread. The caller's Flask app context, if any, is pushed on the worker
so the SQL repository works there too. Either way the overlay is already
set when the write starts.

Countdowns are wall-clock derived: callers re-render every
COUNTDOWN_REFRESH_SECONDS with tick(), which recomputes cards without a
refetch.
"""

from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Future
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Iterable, Optional

from flask import current_app, has_app_context

from orderboard.errors import OrderBoardError
from orderboard.services.notification_service import NotificationService
from orderboard.services.order_repository import OrderRepository
from orderboard.services.order_status import (
    BOARD_STATUSES,
    IN_PROGRESS_STATUSES,
    STATUS_LABELS,
    TERMINAL_STATUSES,
    can_transition,
    next_status,
)
from orderboard.services.order_types import DELIVERY_FILTERS, OrderFilters, OrderView
from orderboard.time_utils import utcnow
from .reconciler import OptimisticReconciler


logger = logging.getLogger(__name__)

COUNTDOWN_REFRESH_SECONDS = 60
ITEMS_PREVIEW = 3

ALL_TAB = "all"
TABS = (ALL_TAB,) + BOARD_STATUSES

PAID = "paid"
PARTIAL = "partial"
UNPAID = "unpaid"

Submit = Callable[..., Future]


def _run_inline(fn, *args) -> Future:
    future: Future = Future()
    try:
        future.set_result(fn(*args))
    except Exception as exc:
        future.set_exception(exc)
    return future


def _in_app_context(fn: Callable) -> Callable:
    """Bind ``fn`` to the current Flask app so it can run on a worker thread."""
    if not has_app_context():
        return fn
    app = current_app._get_current_object()

    def run(*args):
        if has_app_context():
            return fn(*args)
        with app.app_context():
            return fn(*args)

    return run


# =============================================================================
# DISPLAY DERIVATIONS
# =============================================================================

def is_late(order: OrderView, now: datetime) -> bool:
    """Scheduled time has passed while the order is still received/preparing."""
    return (
        order.status in IN_PROGRESS_STATUSES
        and order.scheduled_at is not None
        and order.scheduled_at < now
    )


def countdown(order: OrderView, now: datetime) -> Optional[str]:
    """'2h 15min' / '40min' until the scheduled time, or None."""
    if order.status not in IN_PROGRESS_STATUSES or order.scheduled_at is None:
        return None
    seconds = int((order.scheduled_at - now).total_seconds())
    if seconds <= 0:
        return None
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours}h {minutes}min"
    return f"{minutes}min"


def payment_state(order: OrderView) -> str:
    paid = order.paid_cents
    if paid >= order.total_cents:
        return PAID
    if paid > 0:
        return PARTIAL
    return UNPAID


@dataclass(frozen=True)
class OrderCard:
    order_id: str
    display_number: int
    status: str
    status_label: str
    client_name: Optional[str]
    scheduled_at: Optional[datetime]
    late: bool
    countdown: Optional[str]
    total_cents: int
    paid_cents: int
    payment_state: str
    is_delivery: bool
    items: tuple[str, ...]
    has_more_items: bool
    next_status: Optional[str]
    pending: bool = False


def build_card(order: OrderView, now: datetime, *, pending: bool = False) -> OrderCard:
    return OrderCard(
        order_id=order.id,
        display_number=order.display_number,
        status=order.status,
        status_label=STATUS_LABELS[order.status],
        client_name=order.client.name if order.client else None,
        scheduled_at=order.scheduled_at,
        late=is_late(order, now),
        countdown=countdown(order, now),
        total_cents=order.total_cents,
        paid_cents=order.paid_cents,
        payment_state=payment_state(order),
        is_delivery=order.is_delivery,
        items=tuple(f"{line.quantity}x {line.name}" for line in order.lines[:ITEMS_PREVIEW]),
        has_more_items=len(order.lines) > ITEMS_PREVIEW,
        next_status=next_status(order.status),
        pending=pending,
    )


# =============================================================================
# DROP TARGETS
# =============================================================================

@dataclass(frozen=True)
class Region:
    """A droppable rectangle (one board column)."""
    status: str
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


def closest_center(point: tuple[float, float], regions: Iterable[Region]) -> Optional[Region]:
    """Region whose center is nearest to ``point``; first one wins ties."""
    best = None
    best_distance = math.inf
    for region in regions:
        cx, cy = region.center
        distance = math.hypot(point[0] - cx, point[1] - cy)
        if distance < best_distance:
            best, best_distance = region, distance
    return best


@dataclass(frozen=True)
class DropResult:
    accepted: bool
    order_id: str
    target_status: Optional[str]
    reason: str
    future: Optional[Future] = None


# =============================================================================
# BOARD
# =============================================================================

class KanbanBoard:

    def __init__(
        self,
        repository: OrderRepository,
        *,
        reconciler: Optional[OptimisticReconciler] = None,
        notifier: Optional[NotificationService] = None,
        filters: Optional[OrderFilters] = None,
        submit: Optional[Submit] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.reconciler = reconciler or OptimisticReconciler()
        self.notifier = notifier or NotificationService()
        self.filters = filters or OrderFilters()
        self.clock = clock
        self._submit = submit or _run_inline
        self._orders: list[OrderView] = []
        self._inflight: set[Future] = set()
        self._lock = threading.Lock()

    # -- reads ---------------------------------------------------------------

    def refresh(self) -> list[OrderView]:
        """Refetch the whole list and retire confirmed overlay entries."""
        orders = self.repository.list_orders(self.filters)
        with self._lock:
            self._orders = list(orders)
        retired = self.reconciler.reconcile(orders)
        if retired:
            logger.debug("Overlay confirmed for %s", ", ".join(retired))
        return self.visible_orders()

    def visible_orders(self) -> list[OrderView]:
        with self._lock:
            orders = list(self._orders)
        return self.reconciler.overlay_orders(orders)

    def card(self, order: OrderView) -> OrderCard:
        return build_card(order, self.clock(), pending=order.id in self.reconciler)

    def columns(self) -> dict[str, list[OrderCard]]:
        columns: dict[str, list[OrderCard]] = {status: [] for status in BOARD_STATUSES}
        for order in self.visible_orders():
            if order.status in columns:
                columns[order.status].append(self.card(order))
        return columns

    def tabs(self, selected: str = ALL_TAB) -> list[OrderCard]:
        """Cards shown under a mobile tab. Selecting a tab only filters."""
        if selected not in TABS:
            raise ValueError(f"Unknown tab '{selected}'. Must be one of: {', '.join(TABS)}")
        return [
            self.card(order)
            for order in self.visible_orders()
            if order.status in BOARD_STATUSES and (selected == ALL_TAB or order.status == selected)
        ]

    def tab_counts(self) -> dict[str, int]:
        counts = {tab: 0 for tab in TABS}
        for order in self.visible_orders():
            if order.status in BOARD_STATUSES:
                counts[ALL_TAB] += 1
                counts[order.status] += 1
        return counts

    def select(self, order_id: str) -> OrderView:
        """Detail read for a card, with any pending status applied."""
        order = self.repository.get_order(order_id)
        return self.reconciler.overlay_orders([order])[0]

    def set_delivery_filter(self, mode: str) -> None:
        if mode not in DELIVERY_FILTERS:
            raise ValueError(f"Unknown delivery filter '{mode}'. Must be one of: {', '.join(DELIVERY_FILTERS)}")
        self.filters = replace(self.filters, delivery=mode)

    def pending_writes(self) -> int:
        with self._lock:
            return sum(1 for future in self._inflight if not future.done())

    refresh_interval = COUNTDOWN_REFRESH_SECONDS

    def tick(self) -> list[OrderCard]:
        """
        Cards whose countdown or late flag moves with the clock, recomputed
        from the last fetched list. Meant to run every refresh_interval.
        """
        now = self.clock()
        return [
            build_card(order, now, pending=order.id in self.reconciler)
            for order in self.visible_orders()
            if order.status in IN_PROGRESS_STATUSES and order.scheduled_at is not None
        ]

    # -- intents -------------------------------------------------------------

    def _find(self, order_id: str) -> Optional[OrderView]:
        for order in self.visible_orders():
            if order.id == order_id:
                return order
        return None

    def drop(self, order_id: str, target_status: str) -> DropResult:
        order = self._find(order_id)
        if order is None:
            return DropResult(False, order_id, target_status, "unknown_order")
        if target_status not in BOARD_STATUSES:
            return DropResult(False, order_id, target_status, "not_a_column")
        if target_status == order.status:
            return DropResult(False, order_id, target_status, "same_column")
        if order.status in TERMINAL_STATUSES:
            return DropResult(False, order_id, target_status, "terminal")
        if not can_transition(order.status, target_status):
            logger.info("Order %s dropped off the happy path: %s -> %s", order_id, order.status, target_status)
        return self._move(order_id, target_status)

    def drop_at(self, order_id: str, point: tuple[float, float], regions: Iterable[Region]) -> DropResult:
        region = closest_center(point, regions)
        if region is None:
            return DropResult(False, order_id, None, "no_target")
        return self.drop(order_id, region.status)

    def advance(self, order_id: str) -> DropResult:
        """Explicit 'next step' action: move to the forward status."""
        order = self._find(order_id)
        if order is None:
            return DropResult(False, order_id, None, "unknown_order")
        target = next_status(order.status)
        if target is None:
            return DropResult(False, order_id, None, "no_next_status")
        return self._move(order_id, target)

    def _move(self, order_id: str, status: str) -> DropResult:
        self.reconciler.apply(order_id, status)
        future = self._submit(_in_app_context(self._write_status), order_id, status)
        with self._lock:
            self._inflight.add(future)
        future.add_done_callback(self._forget)
        return DropResult(True, order_id, status, "moved", future)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._inflight.discard(future)

    def _write_status(self, order_id: str, status: str) -> OrderView:
        try:
            updated = self.repository.change_status(order_id, status)
        except Exception as exc:
            rolled_back = self.reconciler.discard(order_id, status)
            level = logging.WARNING if isinstance(exc, OrderBoardError) else logging.ERROR
            logger.log(
                level,
                "Status change of %s to %s failed (overlay %s): %s",
                order_id, status, "rolled back" if rolled_back else "superseded", exc,
            )
            self.notifier.status_change_failed(order_id, status, exc)
            raise
        self.notifier.status_changed(order_id, status)
        return updated
