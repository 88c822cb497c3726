from flarestats.events import ANALYTICS_REFRESHED_EVENT, EventBus


def test_emit_reaches_every_subscriber():
    bus = EventBus()
    first, second = [], []
    bus.subscribe(ANALYTICS_REFRESHED_EVENT, first.append)
    bus.subscribe(ANALYTICS_REFRESHED_EVENT, second.append)

    delivered = bus.emit(ANALYTICS_REFRESHED_EVENT, ["snapshot"])

    assert delivered == 2
    assert first == [["snapshot"]]
    assert second == [["snapshot"]]


def test_emit_without_subscribers_is_a_no_op():
    assert EventBus().emit("nobody-listens", 1) == 0


def test_events_are_routed_by_name():
    bus = EventBus()
    received = []
    bus.subscribe("other", received.append)

    bus.emit(ANALYTICS_REFRESHED_EVENT, 1)

    assert received == []


def test_failing_subscriber_does_not_block_the_others():
    bus = EventBus()
    received = []

    def broken(_payload):
        raise RuntimeError("window closed")

    bus.subscribe(ANALYTICS_REFRESHED_EVENT, broken)
    bus.subscribe(ANALYTICS_REFRESHED_EVENT, received.append)

    assert bus.emit(ANALYTICS_REFRESHED_EVENT, "x") == 1
    assert received == ["x"]


def test_unsubscribe_stops_delivery():
    bus = EventBus()
    received = []
    unsubscribe = bus.subscribe(ANALYTICS_REFRESHED_EVENT, received.append)

    unsubscribe()
    unsubscribe()
    bus.emit(ANALYTICS_REFRESHED_EVENT, "x")

    assert received == []
