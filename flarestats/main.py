from __future__ import annotations
"""
FlareStats - CLI entrypoint
Runs one analytics fetch and prints the ranked sites, or keeps refreshing
in the background with --watch.
"""

import argparse
import sys
import threading
from typing import List, Optional

from flarestats.aggregator import fetch_analytics
from flarestats.errors import FlareStatsError
from flarestats.events import ANALYTICS_REFRESHED_EVENT, event_bus
from flarestats.models import Snapshot
from flarestats.scheduler import get_scheduler
from flarestats.settings_store import load_user_settings
from flarestats.utils.formatting import format_number, format_timestamp


def render_snapshot(snapshot: Snapshot) -> str:
    """Ranked table: site, visits, page views and the busiest bucket."""
    if not snapshot:
        return "No sites found."

    width = max(len(site.name) for site in snapshot)
    lines = [f"{'SITE':<{width}}  {'VISITS':>8}  {'VIEWS':>8}  PEAK"]
    for site in snapshot:
        peak = max(site.series, key=lambda point: point.visits, default=None)
        peak_label = f"{format_timestamp(peak.timestamp)} ({format_number(peak.visits)})" if peak else "-"
        lines.append(
            f"{site.name:<{width}}  {format_number(site.visits):>8}  "
            f"{format_number(site.page_views):>8}  {peak_label}"
        )
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Cloudflare Web Analytics summary")
    parser.add_argument("--settings", help="Path to settings.json (defaults to the data dir)")
    parser.add_argument("--watch", action="store_true", help="Keep refreshing on the configured interval")
    args = parser.parse_args(argv)

    def read_settings():
        return load_user_settings(args.settings)

    try:
        user_settings = read_settings()
        print(render_snapshot(fetch_analytics(user_settings)))
    except FlareStatsError as e:
        print(f"❌ {e}")
        return 1

    if not args.watch:
        return 0

    event_bus.subscribe(ANALYTICS_REFRESHED_EVENT, lambda snapshot: print("\n" + render_snapshot(snapshot)))
    scheduler = get_scheduler()
    interval = scheduler.start(read_settings)
    print(f"⏳ Refreshing every {interval:g}s, Ctrl+C to stop")

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop(timeout=5)
    return 0


if __name__ == '__main__':
    sys.exit(main())
