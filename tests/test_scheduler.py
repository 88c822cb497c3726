import threading
import time

import pytest

from flarestats.aggregator import AnalyticsAggregator
from flarestats.errors import TransportError
from flarestats.events import ANALYTICS_REFRESHED_EVENT, EventBus
from flarestats.models import SiteMetrics, SiteRef, SiteSnapshot, UserSettings
from flarestats.scheduler import RefreshScheduler, get_scheduler, parse_interval_ms

SETTINGS = UserSettings(token="t", account_id="acc", period="24h", refresh_interval="5m")
FAST = 0.01


class FakeAggregator:
    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.calls = 0
        self.seen_settings = []

    def run(self, user_settings):
        self.calls += 1
        self.seen_settings.append(user_settings)
        outcome = self.outcomes.pop(0) if self.outcomes else (SiteSnapshot("a.com", 1, 1),)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _collect(bus, count):
    received = []
    done = threading.Event()

    def on_refresh(snapshot):
        received.append(snapshot)
        if len(received) >= count:
            done.set()

    bus.subscribe(ANALYTICS_REFRESHED_EVENT, on_refresh)
    return received, done


@pytest.mark.parametrize("token,expected", [
    ("5m", 300_000),
    ("15m", 900_000),
    ("60m", 3_600_000),
    ("unknown", 900_000),
    ("", 900_000),
    ("1h", 900_000),
])
def test_parse_interval_ms(token, expected):
    assert parse_interval_ms(token) == expected


def test_start_uses_refresh_interval_from_settings():
    scheduler = RefreshScheduler(aggregator=FakeAggregator(), bus=EventBus())
    try:
        assert scheduler.start(SETTINGS) == 300
        assert scheduler.is_running
    finally:
        scheduler.stop(timeout=1)


def test_loop_publishes_each_successful_cycle():
    bus = EventBus()
    snapshot = (SiteSnapshot("a.com", 10, 20),)
    scheduler = RefreshScheduler(aggregator=FakeAggregator([snapshot, snapshot]), bus=bus)
    received, done = _collect(bus, 2)

    scheduler.start(SETTINGS, interval_seconds=FAST)
    try:
        assert done.wait(2)
    finally:
        scheduler.stop(timeout=1)

    assert received[0] == snapshot


def test_failed_cycle_does_not_stop_the_loop():
    bus = EventBus()
    aggregator = FakeAggregator([TransportError("down"), RuntimeError("bug")])
    scheduler = RefreshScheduler(aggregator=aggregator, bus=bus)
    received, done = _collect(bus, 1)

    scheduler.start(SETTINGS, interval_seconds=FAST)
    try:
        assert done.wait(2)
    finally:
        scheduler.stop(timeout=1)

    assert aggregator.calls >= 3


def test_waits_the_interval_before_the_first_cycle():
    aggregator = FakeAggregator()
    scheduler = RefreshScheduler(aggregator=aggregator, bus=EventBus())

    scheduler.start(SETTINGS, interval_seconds=60)
    time.sleep(0.05)
    scheduler.stop(timeout=1)

    assert aggregator.calls == 0


def test_starting_again_replaces_the_active_loop():
    scheduler = RefreshScheduler(aggregator=FakeAggregator(), bus=EventBus())

    scheduler.start(SETTINGS, interval_seconds=60)
    first = scheduler._loop
    scheduler.start(SETTINGS, interval_seconds=60)
    second = scheduler._loop

    try:
        assert first is not second
        assert first.cancelled.is_set()
        first.thread.join(1)
        assert not first.is_alive()
        assert scheduler.is_running
    finally:
        scheduler.stop(timeout=1)


def test_concurrent_starts_leave_one_live_loop():
    scheduler = RefreshScheduler(aggregator=FakeAggregator(), bus=EventBus())
    threads = [
        threading.Thread(target=scheduler.start, args=(SETTINGS,), kwargs={"interval_seconds": 60})
        for _ in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    try:
        live = [t for t in threading.enumerate() if t.name == "flarestats-refresh"]
        deadline = time.time() + 2
        while len(live) > 1 and time.time() < deadline:
            time.sleep(0.01)
            live = [t for t in threading.enumerate() if t.name == "flarestats-refresh"]
        assert live == [scheduler._loop.thread]
    finally:
        scheduler.stop(timeout=1)


def test_stop_ends_the_loop():
    scheduler = RefreshScheduler(aggregator=FakeAggregator(), bus=EventBus())
    scheduler.start(SETTINGS, interval_seconds=60)
    loop = scheduler._loop

    assert scheduler.stop(timeout=1) is True
    assert not loop.is_alive()
    assert not scheduler.is_running
    assert scheduler.stop() is False


def test_settings_callable_is_read_every_cycle():
    bus = EventBus()
    aggregator = FakeAggregator()
    scheduler = RefreshScheduler(aggregator=aggregator, bus=bus)
    versions = iter(UserSettings(token=f"t{i}", account_id="acc") for i in range(100))
    received, done = _collect(bus, 2)

    scheduler.start(lambda: next(versions), interval_seconds=FAST)
    try:
        assert done.wait(2)
    finally:
        scheduler.stop(timeout=1)

    tokens = [s.token for s in aggregator.seen_settings]
    assert len(set(tokens)) == len(tokens)


def test_run_cycle_never_raises():
    scheduler = RefreshScheduler(aggregator=FakeAggregator([TransportError("down")]), bus=EventBus())
    assert scheduler.run_cycle(SETTINGS) is False
    assert scheduler.run_cycle(SETTINGS) is True


def test_cancelled_cycle_is_not_published():
    bus = EventBus()
    received, _ = _collect(bus, 1)
    scheduler = RefreshScheduler(aggregator=FakeAggregator(), bus=bus)
    cancelled = threading.Event()
    cancelled.set()

    assert scheduler.run_cycle(SETTINGS, cancelled) is False
    assert received == []


def test_get_scheduler_is_a_singleton():
    assert get_scheduler() is get_scheduler()


class _TwoSiteClient:
    def configure_pool(self, concurrent_requests):
        pass

    def list_sites(self):
        return [SiteRef("a.com", "a"), SiteRef("b.com", "b")]

    def fetch_site_metrics(self, site, time_range, exclude_bots):
        return SiteMetrics(visits=len(site.site_tag), page_views=1)


def test_subscribers_cannot_alter_what_others_receive():
    bus = EventBus()
    aggregator = AnalyticsAggregator(client_factory=lambda token, account_id: _TwoSiteClient())
    scheduler = RefreshScheduler(aggregator=aggregator, bus=bus)
    seen_sizes = []

    def greedy(snapshot):
        snapshot.clear()

    bus.subscribe(ANALYTICS_REFRESHED_EVENT, greedy)
    bus.subscribe(ANALYTICS_REFRESHED_EVENT, lambda snapshot: seen_sizes.append(len(snapshot)))

    assert scheduler.run_cycle(SETTINGS) is True
    assert seen_sizes == [2]
