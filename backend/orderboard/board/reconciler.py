# Overview: Optimistic status overlay that hides the latency of status writes on the board.

"""
Optimistic Update Reconciler

================================================================================
MODEL:
    overlay: order_id -> provisional status (memory only, never persisted)

    displayed order = authoritative order with status replaced by its
                      overlay entry, if one exists

LIFECYCLE:
1. apply()      entry set the moment a drop/advance is accepted, before the
                write is issued
2. reconcile()  on EVERY authoritative refresh, entries whose status the
                store now reports are retired
3. discard()    write failed: entry removed only if it still targets the
                failed status (a newer intent is never clobbered)

ORDERING:
    Last write wins per order id. A second intent replaces the pending
    target; it does not queue behind the first.
================================================================================
"""

from __future__ import annotations

import threading
from typing import Iterable, Optional

from orderboard.services.order_status import validate_status
from orderboard.services.order_types import OrderView


class OptimisticReconciler:

    def __init__(self):
        self._overlay: dict[str, str] = {}
        self._lock = threading.Lock()

    def apply(self, order_id: str, status: str) -> None:
        validate_status(status)
        with self._lock:
            self._overlay[order_id] = status

    def pending(self, order_id: str) -> Optional[str]:
        with self._lock:
            return self._overlay.get(order_id)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._overlay)

    def reconcile(self, orders: Iterable[OrderView]) -> list[str]:
        """
        Retire entries confirmed by an authoritative list.

        Orders absent from the list (filtered out, not yet visible) keep
        their entries. Returns the retired order ids.
        """
        authoritative = {order.id: order.status for order in orders}
        with self._lock:
            retired = [
                order_id
                for order_id, status in self._overlay.items()
                if authoritative.get(order_id) == status
            ]
            for order_id in retired:
                del self._overlay[order_id]
        return retired

    def overlay_orders(self, orders: Iterable[OrderView]) -> list[OrderView]:
        """Authoritative orders with pending statuses applied."""
        overlay = self.snapshot()
        merged = []
        for order in orders:
            status = overlay.get(order.id)
            merged.append(order.with_status(status) if status and status != order.status else order)
        return merged

    def discard(self, order_id: str, status: Optional[str] = None) -> bool:
        """
        Drop the entry for order_id. With ``status``, only when the entry
        still targets it. Returns True if an entry was removed.
        """
        with self._lock:
            current = self._overlay.get(order_id)
            if current is None or (status is not None and current != status):
                return False
            del self._overlay[order_id]
            return True

    def clear(self) -> None:
        with self._lock:
            self._overlay.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._overlay)

    def __contains__(self, order_id: object) -> bool:
        with self._lock:
            return order_id in self._overlay
