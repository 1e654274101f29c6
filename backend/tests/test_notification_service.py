import pytest

from orderboard.services.notification_service import (
    ORDER_CREATED,
    STATUS_DELIVERED,
    STATUS_READY,
    NotificationService,
)


class TestNotificationService:

    def test_status_hooks_fire_only_for_ready_and_delivered(self):
        notifier = NotificationService()
        seen = []
        notifier.subscribe(STATUS_READY, lambda **payload: seen.append(("ready", payload["order_id"])))
        notifier.subscribe(STATUS_DELIVERED, lambda **payload: seen.append(("delivered", payload["order_id"])))

        assert notifier.status_changed("a", "preparing") == 0
        assert notifier.status_changed("a", "ready") == 1
        assert notifier.status_changed("a", "delivered") == 1
        assert seen == [("ready", "a"), ("delivered", "a")]

    def test_failing_listener_is_isolated(self, caplog):
        notifier = NotificationService()
        seen = []

        def broken(**payload):
            raise RuntimeError("speaker unplugged")

        notifier.subscribe(ORDER_CREATED, broken)
        notifier.subscribe(ORDER_CREATED, lambda **payload: seen.append(payload["display_number"]))

        assert notifier.order_created("a", 7) == 1
        assert seen == [7]
        assert "Notification listener failed" in caplog.text

    def test_unsubscribe(self):
        notifier = NotificationService()
        seen = []
        unsubscribe = notifier.subscribe(STATUS_READY, lambda **payload: seen.append(payload))
        unsubscribe()
        unsubscribe()
        notifier.status_changed("a", "ready")
        assert seen == []

    def test_disabled_service_is_silent(self):
        notifier = NotificationService(enabled=False)
        seen = []
        notifier.subscribe(STATUS_READY, lambda **payload: seen.append(payload))
        assert notifier.status_changed("a", "ready") == 0
        assert seen == []

    def test_unknown_event(self):
        with pytest.raises(ValueError):
            NotificationService().subscribe("order_exploded", lambda **payload: None)
