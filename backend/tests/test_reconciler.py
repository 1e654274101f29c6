import threading

import pytest

from orderboard.board.reconciler import OptimisticReconciler
from orderboard.errors import OrderStatusError
from orderboard.services.order_types import OrderView

from conftest import FIXED_NOW


def _view(order_id, status="received"):
    return OrderView(id=order_id, display_number=1, status=status, total_cents=0, created_at=FIXED_NOW)


class TestOptimisticReconciler:

    def test_overlay_replaces_displayed_status(self):
        reconciler = OptimisticReconciler()
        reconciler.apply("a", "ready")

        merged = reconciler.overlay_orders([_view("a"), _view("b")])
        assert [o.status for o in merged] == ["ready", "received"]
        assert "a" in reconciler and "b" not in reconciler

    def test_last_write_wins(self):
        reconciler = OptimisticReconciler()
        reconciler.apply("a", "preparing")
        reconciler.apply("a", "ready")
        assert reconciler.pending("a") == "ready"
        assert len(reconciler) == 1

    def test_reconcile_retires_confirmed_entries_only(self):
        reconciler = OptimisticReconciler()
        reconciler.apply("a", "ready")
        reconciler.apply("b", "preparing")

        retired = reconciler.reconcile([_view("a", "ready"), _view("b", "received")])

        assert retired == ["a"]
        assert reconciler.snapshot() == {"b": "preparing"}

    def test_orders_missing_from_refresh_keep_entries(self):
        reconciler = OptimisticReconciler()
        reconciler.apply("a", "ready")
        assert reconciler.reconcile([]) == []
        assert reconciler.pending("a") == "ready"

    def test_discard_only_matching_intent(self):
        reconciler = OptimisticReconciler()
        reconciler.apply("a", "ready")

        assert reconciler.discard("a", "preparing") is False
        assert reconciler.pending("a") == "ready"
        assert reconciler.discard("a", "ready") is True
        assert reconciler.discard("a") is False

    def test_apply_validates_status(self):
        with pytest.raises(OrderStatusError):
            OptimisticReconciler().apply("a", "shipped")

    def test_concurrent_applies(self):
        reconciler = OptimisticReconciler()

        def worker(n):
            for i in range(200):
                reconciler.apply(f"order-{n}-{i}", "preparing")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(reconciler) == 800
        reconciler.clear()
        assert len(reconciler) == 0
