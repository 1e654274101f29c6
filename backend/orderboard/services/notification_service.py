# Overview: Fire-and-forget notification hooks (new order, ready, delivered, failed status change).

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable

from .order_status import DELIVERED, READY


logger = logging.getLogger(__name__)

ORDER_CREATED = "order_created"
STATUS_READY = "status_ready"
STATUS_DELIVERED = "status_delivered"
STATUS_CHANGE_FAILED = "status_change_failed"

EVENTS = (ORDER_CREATED, STATUS_READY, STATUS_DELIVERED, STATUS_CHANGE_FAILED)

_STATUS_EVENTS = {
    READY: STATUS_READY,
    DELIVERED: STATUS_DELIVERED,
}

Listener = Callable[..., Any]


class NotificationService:
    """
    In-process hook registry used for sounds/toasts.

    Listeners are called synchronously. A failing listener is logged and
    skipped; it never affects the operation that fired the event.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        if event not in EVENTS:
            raise ValueError(f"Unknown event '{event}'. Must be one of: {', '.join(EVENTS)}")
        with self._lock:
            self._listeners[event].append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners[event]:
                    self._listeners[event].remove(listener)

        return _unsubscribe

    def emit(self, event: str, **payload) -> int:
        """Call every listener of ``event``. Returns how many succeeded."""
        if not self.enabled:
            logger.debug("Notifications disabled; dropping %s", event)
            return 0

        with self._lock:
            listeners = list(self._listeners.get(event, ()))

        delivered = 0
        for listener in listeners:
            try:
                listener(**payload)
                delivered += 1
            except Exception:
                logger.exception("Notification listener failed for %s", event)
        return delivered

    # -- typed helpers --------------------------------------------------------

    def order_created(self, order_id: str, display_number: int) -> int:
        return self.emit(ORDER_CREATED, order_id=order_id, display_number=display_number)

    def status_changed(self, order_id: str, status: str) -> int:
        """Fires the ready/delivered hooks; other statuses are silent."""
        event = _STATUS_EVENTS.get(status)
        if event is None:
            return 0
        return self.emit(event, order_id=order_id, status=status)

    def status_change_failed(self, order_id: str, status: str, error: Exception) -> int:
        return self.emit(STATUS_CHANGE_FAILED, order_id=order_id, status=status, error=error)
