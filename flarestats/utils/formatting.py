from __future__ import annotations
"""
Display helpers for snapshot numbers and bucket labels
"""

from datetime import datetime, timezone
from typing import Optional


def format_number(n: int) -> str:
    """
    Compact counter formatting:
    - n >= 1,000,000 → "1.5M"
    - n >= 1,000     → "1.5K"
    - otherwise      → "999"
    """
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return str(n)


def format_timestamp(ts: str, tz: Optional[timezone] = None) -> str:
    """
    Short label for a bucket key.
    Daily keys (YYYY-MM-DD) drop the year; hourly keys render as local HH:00.
    """
    if len(ts) == 10:
        return ts[5:]
    if len(ts) > 10:
        try:
            moment = datetime.strptime(ts, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)
        except ValueError:
            return ts
        return f"{moment.astimezone(tz).hour:02d}:00"
    return ts
