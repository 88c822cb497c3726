"""
Canonical configuration for reporting periods and refresh cadence.
Centralizing these values keeps the query window, the bucket filler
and the scheduler in agreement.
"""

# Reporting periods
HOURLY_PERIOD_HOURS = 24     # "24h" -> hourly buckets
DAILY_PERIOD_DAYS = {
    "7d": 7,
    "30d": 30,
}
DEFAULT_PERIOD_DAYS = 30     # Unknown period tokens behave as "30d"
DEFAULT_PERIOD = "24h"       # Period used before the user picks one

# Background refresh cadence (milliseconds)
REFRESH_INTERVALS_MS = {
    "5m": 5 * 60 * 1000,
    "15m": 15 * 60 * 1000,
    "60m": 60 * 60 * 1000,
}
DEFAULT_REFRESH_INTERVAL = "15m"
DEFAULT_REFRESH_INTERVAL_MS = REFRESH_INTERVALS_MS[DEFAULT_REFRESH_INTERVAL]
