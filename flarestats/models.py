from __future__ import annotations
"""
Canonical data models for the analytics pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict

# bucket key -> (visits, page_views)
RawBucket = Dict[str, Tuple[int, int]]

API_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class UserSettings(BaseModel):
    """
    Settings persisted by the user (token, account, period, cadence).
    Immutable once loaded; a pipeline run never mutates them.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    token: str = ""
    account_id: str = ""
    period: str = ""
    exclude_bots: bool = True
    theme: str = "auto"
    refresh_interval: str = "15m"


class Granularity(str, Enum):
    """Bucket width; the value is the GraphQL dimension to group by"""
    HOURLY = "datetimeHour"
    DAILY = "date"


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime
    granularity: Granularity

    @property
    def start_str(self) -> str:
        return self.start.strftime(API_DATETIME_FORMAT)

    @property
    def end_str(self) -> str:
        return self.end.strftime(API_DATETIME_FORMAT)


@dataclass(frozen=True)
class SiteRef:
    name: str
    site_tag: str


@dataclass(frozen=True)
class SiteMetrics:
    """
    Raw result of one per-site query.
    visits/page_views come from the totals query, not from the series.
    """
    visits: int
    page_views: int
    raw: RawBucket = field(default_factory=dict)


@dataclass(frozen=True)
class SeriesPoint:
    timestamp: str
    visits: int
    page_views: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'visits': self.visits,
            'page_views': self.page_views
        }


@dataclass(frozen=True)
class SiteSnapshot:
    name: str
    visits: int
    page_views: int
    series: Tuple[SeriesPoint, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape consumed by the dashboard"""
        return {
            'name': self.name,
            'visits': self.visits,
            'page_views': self.page_views,
            'series': [point.to_dict() for point in self.series]
        }


# Ranked result of one run, immutable once built
Snapshot = Tuple[SiteSnapshot, ...]


def snapshot_to_dicts(snapshot: Snapshot) -> List[Dict[str, Any]]:
    return [site.to_dict() for site in snapshot]
