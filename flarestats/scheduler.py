from __future__ import annotations
"""
Background refresh scheduler.

One refresh loop per process. Starting again cancels the active loop
before the new one begins; loops never stack. Each cycle waits the full
interval, runs the aggregator and publishes the snapshot. A failed cycle
is logged and the loop carries on.
"""

import threading
from typing import Callable, Optional, Union

from flarestats.aggregator import AnalyticsAggregator
from flarestats.config.periods import DEFAULT_REFRESH_INTERVAL_MS, REFRESH_INTERVALS_MS
from flarestats.events import ANALYTICS_REFRESHED_EVENT, EventBus, event_bus
from flarestats.models import UserSettings
from flarestats.utils.logs import log_event

SettingsSource = Union[UserSettings, Callable[[], UserSettings]]


def parse_interval_ms(interval: str) -> int:
    """Map a refresh interval token to milliseconds; unknown tokens mean 15m."""
    return REFRESH_INTERVALS_MS.get(interval, DEFAULT_REFRESH_INTERVAL_MS)


def _resolve_settings(source: SettingsSource) -> UserSettings:
    return source() if callable(source) else source


class _RefreshLoop:
    """A single cancellable loop running on its own daemon thread"""

    def __init__(self, scheduler: "RefreshScheduler", source: SettingsSource, interval_seconds: float):
        self.scheduler = scheduler
        self.source = source
        self.interval_seconds = interval_seconds
        self.cancelled = threading.Event()
        self.thread = threading.Thread(target=self._run, name="flarestats-refresh", daemon=True)

    def start(self) -> None:
        self.thread.start()

    def cancel(self) -> None:
        self.cancelled.set()

    def is_alive(self) -> bool:
        return self.thread.is_alive()

    def _run(self) -> None:
        log_event("SCHEDULER", f"Refresh loop started (every {self.interval_seconds:g}s)")
        while not self.cancelled.is_set():
            # wait() returns True as soon as the loop is cancelled
            if self.cancelled.wait(self.interval_seconds):
                break
            self.scheduler.run_cycle(self.source, self.cancelled)
        log_event("SCHEDULER", "Refresh loop stopped")


class RefreshScheduler:
    """Owns the process-wide background refresh loop"""

    def __init__(self, aggregator: Optional[AnalyticsAggregator] = None, bus: Optional[EventBus] = None):
        self.aggregator = aggregator or AnalyticsAggregator()
        self.bus = bus or event_bus
        self._lock = threading.Lock()
        self._loop: Optional[_RefreshLoop] = None

    @property
    def is_running(self) -> bool:
        loop = self._loop
        return loop is not None and loop.is_alive() and not loop.cancelled.is_set()

    def start(self, source: SettingsSource, interval_seconds: Optional[float] = None) -> float:
        """
        Start refreshing, replacing any loop already running.

        `source` is either fixed settings or a callable re-read every
        cycle. The interval comes from the settings' refresh_interval
        unless `interval_seconds` overrides it. Returns the interval used.
        """
        if interval_seconds is None:
            interval_seconds = parse_interval_ms(_resolve_settings(source).refresh_interval) / 1000

        with self._lock:
            if self._loop is not None:
                log_event("SCHEDULER", "Cancelling previous refresh loop", "WARNING")
                self._loop.cancel()
            loop = _RefreshLoop(self, source, interval_seconds)
            loop.start()
            self._loop = loop

        return interval_seconds

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Cancel the active loop. Returns False when nothing was running."""
        with self._lock:
            loop, self._loop = self._loop, None

        if loop is None:
            return False
        loop.cancel()
        if timeout is not None and loop.thread is not threading.current_thread():
            loop.thread.join(timeout)
        return True

    def run_cycle(self, source: SettingsSource, cancelled: Optional[threading.Event] = None) -> bool:
        """Run one refresh and publish it. Never raises; returns success."""
        try:
            snapshot = self.aggregator.run(_resolve_settings(source))
        except Exception as e:
            log_event("SCHEDULER", f"Background refresh error: {e}", "ERROR")
            return False

        if cancelled is not None and cancelled.is_set():
            log_event("SCHEDULER", "Loop cancelled mid-cycle, dropping snapshot", "WARNING")
            return False

        delivered = self.bus.emit(ANALYTICS_REFRESHED_EVENT, snapshot)
        log_event(
            "SCHEDULER",
            f"Published {len(snapshot)} sites to {delivered} subscriber(s)",
            "SUCCESS"
        )
        return True


_scheduler: Optional[RefreshScheduler] = None
_scheduler_lock = threading.Lock()


def get_scheduler() -> RefreshScheduler:
    """Process-wide scheduler instance."""
    global _scheduler

    with _scheduler_lock:
        if _scheduler is None:
            _scheduler = RefreshScheduler()
        return _scheduler
