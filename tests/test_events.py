from storefront.domain.constants import Events
from storefront.events.handlers import bind_order_created_handler
from storefront.services.event_bus import EventBus


class FakeTask:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def delay(self, *args):
        if self.fail:
            raise ConnectionError("broker down")
        self.calls.append(args)


def test_handlers_run_in_order_and_failures_are_isolated(caplog):
    bus = EventBus()
    seen = []

    def broken(payload):
        raise RuntimeError("boom")

    bus.subscribe("thing.happened", lambda p: seen.append(("first", p["n"])))
    bus.subscribe("thing.happened", broken)
    bus.subscribe("thing.happened", lambda p: seen.append(("third", p["n"])))

    delivered = bus.emit("thing.happened", {"n": 1})

    assert delivered == 2
    assert seen == [("first", 1), ("third", 1)]
    assert "boom" in caplog.text


def test_emit_without_handlers():
    bus = EventBus()
    assert bus.emit("nobody.listens", {}) == 0
    assert bus.handlers("nobody.listens") == []


def test_order_created_enqueues_reservation_and_notification():
    bus = EventBus()
    reserve, notify = FakeTask(), FakeTask()
    bind_order_created_handler(bus, reserve_task=reserve, notify_task=notify)

    bus.emit(Events.ORDER_CREATED, {"orderId": 5, "orderNumber": "KL-5", "userId": 2, "inventoryReserved": False})

    assert reserve.calls == [(5,)]
    assert notify.calls == [(5, "KL-5", 2)]


def test_reservation_skipped_when_checkout_reserved():
    bus = EventBus()
    reserve, notify = FakeTask(), FakeTask()
    bind_order_created_handler(bus, reserve_task=reserve, notify_task=notify)

    bus.emit(Events.ORDER_CREATED, {"orderId": 6, "orderNumber": "KL-6", "userId": None, "inventoryReserved": True})

    assert reserve.calls == []
    assert notify.calls == [(6, "KL-6", None)]


def test_enqueue_failure_does_not_stop_notification(caplog):
    bus = EventBus()
    notify = FakeTask()
    bind_order_created_handler(bus, reserve_task=FakeTask(fail=True), notify_task=notify)

    delivered = bus.emit(Events.ORDER_CREATED, {"orderId": 7, "orderNumber": "KL-7", "userId": 1})

    assert delivered == 1
    assert notify.calls == [(7, "KL-7", 1)]
    assert "Could not enqueue reservation for order KL-7" in caplog.text
