from __future__ import annotations
"""
Centralized window logic for Cloudflare analytics.
Resolves a period token into a concrete query range and turns sparse
API buckets into contiguous, gap-filled series.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Union

from flarestats.config.periods import DAILY_PERIOD_DAYS, DEFAULT_PERIOD_DAYS, HOURLY_PERIOD_HOURS
from flarestats.models import API_DATETIME_FORMAT, Granularity, RawBucket, SeriesPoint, TimeRange

HOURLY_KEY_FORMAT = "%Y-%m-%dT%H:00:00Z"
DAILY_KEY_FORMAT = "%Y-%m-%d"

Instant = Union[datetime, str]


def _as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC, convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _utc_midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def resolve_time_range(period: str, now: Optional[datetime] = None) -> TimeRange:
    """
    Map a period token onto a concrete [start, end] range.

    - "24h": hourly buckets, start = now - 24h truncated to the hour
    - "7d":  daily buckets, start = UTC midnight six days ago
    - anything else (including "30d"): daily buckets over 30 days

    end is always `now`. Unknown tokens fall back to 30 days.
    """
    now = _as_utc(now or datetime.now(timezone.utc))

    if period == "24h":
        start = (now - timedelta(hours=HOURLY_PERIOD_HOURS)).replace(minute=0, second=0, microsecond=0)
        return TimeRange(start=start, end=now, granularity=Granularity.HOURLY)

    days = DAILY_PERIOD_DAYS.get(period, DEFAULT_PERIOD_DAYS)
    start = _utc_midnight(now - timedelta(days=days - 1))
    return TimeRange(start=start, end=now, granularity=Granularity.DAILY)


def _parse_instant(value: Instant) -> Optional[datetime]:
    if isinstance(value, datetime):
        return _as_utc(value)
    for fmt in (API_DATETIME_FORMAT, DAILY_KEY_FORMAT):
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def fill_series_gaps(
    start: Instant,
    end: Instant,
    granularity: Granularity,
    raw: RawBucket
) -> List[SeriesPoint]:
    """
    Materialize every bucket between start and end (both inclusive).

    Buckets absent from `raw` are emitted as zero. Keys in `raw` that do
    not line up with a bucket are ignored. An inverted or unparseable
    range yields an empty list.
    """
    start_dt = _parse_instant(start)
    end_dt = _parse_instant(end)
    if start_dt is None or end_dt is None:
        return []

    if granularity == Granularity.HOURLY:
        current = start_dt.replace(minute=0, second=0, microsecond=0)
        step = timedelta(hours=1)
        key_format = HOURLY_KEY_FORMAT
    else:
        current = _utc_midnight(start_dt)
        end_dt = _utc_midnight(end_dt)
        step = timedelta(days=1)
        key_format = DAILY_KEY_FORMAT

    series = []
    while current <= end_dt:
        key = current.strftime(key_format)
        visits, page_views = raw.get(key, (0, 0))
        series.append(SeriesPoint(timestamp=key, visits=visits, page_views=page_views))
        current += step

    return series


def count_buckets(time_range: TimeRange) -> int:
    """Number of buckets fill_series_gaps will produce for a range."""
    if time_range.end < time_range.start:
        return 0
    if time_range.granularity == Granularity.HOURLY:
        span = time_range.end - time_range.start.replace(minute=0, second=0, microsecond=0)
        return int(span.total_seconds() // 3600) + 1
    return (time_range.end.date() - time_range.start.date()).days + 1
