"""Process-wide Prometheus counters."""

from prometheus_client import Counter

CACHE_HITS_TOTAL = Counter(
    "shortlink_cache_hits_total",
    "Short link cache lookups answered from the cache",
)
CACHE_MISSES_TOTAL = Counter(
    "shortlink_cache_misses_total",
    "Short link cache lookups that fell through to the store",
)
CACHE_ERRORS_TOTAL = Counter(
    "shortlink_cache_errors_total",
    "Cache operations that failed and were degraded to miss/no-op",
    ["operation"],
)
CLICKS_RECORDED_TOTAL = Counter(
    "shortlink_clicks_recorded_total",
    "Click jobs processed by the click recorder",
)
CLICK_ACTIONS_FAILED_TOTAL = Counter(
    "shortlink_click_actions_failed_total",
    "Click persistence actions that failed and were dropped",
    ["action"],
)
CLICK_JOBS_DROPPED_TOTAL = Counter(
    "shortlink_click_jobs_dropped_total",
    "Click jobs dropped because the background queue was full or stopped",
)
CLICK_JOBS_FAILED_TOTAL = Counter(
    "shortlink_click_jobs_failed_total",
    "Click jobs that raised inside a background worker",
)
LINKS_EXPIRED_TOTAL = Counter(
    "shortlink_links_expired_total",
    "Links deactivated by lazy expiry",
)
