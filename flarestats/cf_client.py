from __future__ import annotations
"""
Cloudflare Web Analytics API Client
Handles site discovery (REST) and per-site RUM metrics (GraphQL) for one account
"""

from typing import Any, Dict, List, Optional

import requests
from requests.adapters import DEFAULT_POOLSIZE, HTTPAdapter

from flarestats.errors import AuthError, GraphQLError, SchemaError, TransportError
from flarestats.models import RawBucket, SiteMetrics, SiteRef, TimeRange
from flarestats.settings import settings
from flarestats.utils.logs import log_event

AUTH_STATUS_CODES = {401, 403}

SITE_METRICS_QUERY = """{{
  viewer {{
    accounts(filter: {{ accountTag: $accountTag }}) {{
      totals: rumPageloadEventsAdaptiveGroups(limit: 1, filter: $filter) {{
        count
        sum {{ visits }}
      }}
      series: rumPageloadEventsAdaptiveGroups(limit: {series_limit}, filter: $filter) {{
        count
        sum {{ visits }}
        dimensions {{ ts: {ts_field} }}
      }}
    }}
  }}
}}"""


def _as_count(value: Any) -> int:
    """Tolerant extraction of a non-negative integer counter."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return 0
    return value


def build_site_filter(site_tag: str, time_range: TimeRange, exclude_bots: bool) -> Dict[str, Any]:
    """AND-combined filter: time window, site tag and optionally humans only."""
    filters: List[Dict[str, Any]] = [
        {"datetime_geq": time_range.start_str, "datetime_leq": time_range.end_str},
        {"siteTag": site_tag},
    ]
    if exclude_bots:
        filters.append({"bot": 0})
    return {"AND": filters}


def parse_site_list(body: Any) -> List[SiteRef]:
    """
    Extract (zone name, site tag) pairs from a site_info/list response.
    Entries missing either field are skipped, not fatal.
    """
    result = body.get("result") if isinstance(body, dict) else None
    if not isinstance(result, list):
        raise SchemaError("Invalid response: missing result array")

    sites = []
    for entry in result:
        if not isinstance(entry, dict):
            continue
        ruleset = entry.get("ruleset")
        name = ruleset.get("zone_name") if isinstance(ruleset, dict) else None
        tag = entry.get("site_tag")
        if isinstance(name, str) and isinstance(tag, str):
            sites.append(SiteRef(name=name, site_tag=tag))
    return sites


def parse_site_metrics(body: Any) -> SiteMetrics:
    """
    Extract totals and the sparse bucket map from a GraphQL response.

    Only a response without data.viewer.accounts[0] is fatal. Missing
    totals/series, or missing fields inside them, count as zero.
    """
    if not isinstance(body, dict):
        raise SchemaError("Invalid response: body is not an object")

    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        raise GraphQLError(errors)

    try:
        account = body["data"]["viewer"]["accounts"][0]
    except (KeyError, IndexError, TypeError):
        raise SchemaError("Invalid response: missing data.viewer.accounts")
    if not isinstance(account, dict):
        raise SchemaError("Invalid response: account entry is not an object")

    visits = 0
    page_views = 0
    totals = account.get("totals")
    if isinstance(totals, list) and totals and isinstance(totals[0], dict):
        first = totals[0]
        page_views = _as_count(first.get("count"))
        summed = first.get("sum")
        visits = _as_count(summed.get("visits")) if isinstance(summed, dict) else 0

    raw: RawBucket = {}
    series = account.get("series")
    for point in series if isinstance(series, list) else []:
        if not isinstance(point, dict):
            continue
        dimensions = point.get("dimensions")
        ts = dimensions.get("ts") if isinstance(dimensions, dict) else None
        if not isinstance(ts, str):
            continue
        summed = point.get("sum")
        point_visits = _as_count(summed.get("visits")) if isinstance(summed, dict) else 0
        raw[ts] = (point_visits, _as_count(point.get("count")))

    return SiteMetrics(visits=visits, page_views=page_views, raw=raw)


class CloudflareClient:
    """Client for the Cloudflare Web Analytics API for a specific account"""

    def __init__(self, token: str, account_id: str, session: Optional[requests.Session] = None):
        self.token = token
        self.account_id = account_id
        self.session = session or requests.Session()
        self.timeout = settings.REQUEST_TIMEOUT

    def configure_pool(self, concurrent_requests: int) -> None:
        """
        Size the connection pool for a fan-out of `concurrent_requests`
        parallel calls so every worker keeps a reusable connection.
        """
        pool_size = max(concurrent_requests, DEFAULT_POOLSIZE)
        adapter = HTTPAdapter(pool_connections=DEFAULT_POOLSIZE, pool_maxsize=pool_size)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}")

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise SchemaError(f"Invalid response: body is not JSON ({e})")

    # ============================================================
    # SITE DISCOVERY
    # ============================================================

    def list_sites(self) -> List[SiteRef]:
        url = f"{settings.CF_API_BASE.rstrip('/')}/accounts/{self.account_id}/rum/site_info/list"
        response = self._send("GET", url)

        if not response.ok:
            raise AuthError(
                f"API error {response.status_code}: {response.text}",
                status_code=response.status_code
            )

        sites = parse_site_list(self._decode(response))
        log_event("CF", f"Discovered {len(sites)} sites", context=f"ACCOUNT: {self.account_id}")
        return sites

    # ============================================================
    # PER-SITE METRICS
    # ============================================================

    def fetch_site_metrics(self, site: SiteRef, time_range: TimeRange, exclude_bots: bool) -> SiteMetrics:
        query = SITE_METRICS_QUERY.format(
            series_limit=settings.SERIES_LIMIT,
            ts_field=time_range.granularity.value
        )
        payload = {
            "query": query,
            "variables": {
                "accountTag": self.account_id,
                "filter": build_site_filter(site.site_tag, time_range, exclude_bots),
            },
        }

        response = self._send("POST", settings.CF_GRAPHQL_URL, json=payload)

        if not response.ok:
            error_cls = AuthError if response.status_code in AUTH_STATUS_CODES else TransportError
            raise error_cls(
                f"GraphQL error: {response.status_code}",
                status_code=response.status_code
            )

        metrics = parse_site_metrics(self._decode(response))
        log_event(
            "CF",
            f"{site.name}: {metrics.visits} visits, {metrics.page_views} page views, "
            f"{len(metrics.raw)} buckets",
            context=f"ACCOUNT: {self.account_id}"
        )
        return metrics
