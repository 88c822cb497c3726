from __future__ import annotations
"""
Analytics Aggregator
Discovers sites, fans out per-site metric fetches in parallel and
ranks the results into a snapshot.

FAILURE POLICY:
  Site discovery failing aborts the run. A single site failing is logged
  and that site is left out; the other sites are unaffected.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Optional

from flarestats.cf_client import CloudflareClient
from flarestats.errors import ConfigError
from flarestats.models import SiteRef, SiteSnapshot, Snapshot, TimeRange, UserSettings
from flarestats.utils.logs import log_event
from flarestats.utils.windows import count_buckets, fill_series_gaps, resolve_time_range

ClientFactory = Callable[[str, str], CloudflareClient]

MISSING_CREDENTIALS_MESSAGE = "Please configure API token and Account ID in settings"


class AnalyticsAggregator:
    """Runs one full retrieval cycle for an account"""

    def __init__(self, client_factory: ClientFactory = CloudflareClient):
        self.client_factory = client_factory

    def run(self, user_settings: UserSettings) -> Snapshot:
        """
        Fetch every site of the account and return them ranked by visits.

        Raises:
            ConfigError: token or account id is empty (no network call made)
            AnalyticsAPIError: site discovery failed
        """
        if not user_settings.token or not user_settings.account_id:
            raise ConfigError(MISSING_CREDENTIALS_MESSAGE)

        account_tag = f"ACCOUNT: {user_settings.account_id}"
        client = self.client_factory(user_settings.token, user_settings.account_id)

        log_event("AGGREGATOR", "Fetching sites...", "PROGRESS", context=account_tag)
        sites = client.list_sites()
        if not sites:
            log_event("AGGREGATOR", "No sites found for account", "WARNING", context=account_tag)
            return ()

        client.configure_pool(len(sites))
        # One range for the whole run so every site shares the same buckets
        time_range = resolve_time_range(user_settings.period)
        log_event(
            "AGGREGATOR",
            f"Fetching {len(sites)} sites ({time_range.granularity.value}, "
            f"{count_buckets(time_range)} buckets from {time_range.start_str})",
            "PROGRESS",
            context=account_tag
        )

        # Results keyed by discovery index so the stable sort below keeps
        # discovery order for equal visit counts.
        results: Dict[int, SiteSnapshot] = {}
        with ThreadPoolExecutor(max_workers=len(sites)) as executor:
            futures = {
                executor.submit(self._fetch_site, client, site, time_range, user_settings.exclude_bots): idx
                for idx, site in enumerate(sites)
            }
            for future in as_completed(futures):
                idx = futures[future]
                try:
                    results[idx] = future.result()
                except Exception as e:
                    log_event(
                        "AGGREGATOR",
                        f"Error fetching site data for {sites[idx].name}: {e}",
                        "ERROR",
                        context=account_tag
                    )

        ranked = sorted((results[idx] for idx in sorted(results)), key=lambda site: site.visits, reverse=True)
        snapshot: Snapshot = tuple(ranked)

        log_event(
            "AGGREGATOR",
            f"Snapshot ready: {len(snapshot)}/{len(sites)} sites",
            "SUCCESS",
            context=account_tag
        )
        return snapshot

    @staticmethod
    def _fetch_site(
        client: CloudflareClient,
        site: SiteRef,
        time_range: TimeRange,
        exclude_bots: bool
    ) -> SiteSnapshot:
        metrics = client.fetch_site_metrics(site, time_range, exclude_bots)
        series = fill_series_gaps(time_range.start, time_range.end, time_range.granularity, metrics.raw)
        return SiteSnapshot(
            name=site.name,
            visits=metrics.visits,
            page_views=metrics.page_views,
            series=tuple(series)
        )


def fetch_analytics(user_settings: UserSettings, aggregator: Optional[AnalyticsAggregator] = None) -> Snapshot:
    """On-demand entry point: run one cycle and return the snapshot or raise."""
    return (aggregator or AnalyticsAggregator()).run(user_settings)
