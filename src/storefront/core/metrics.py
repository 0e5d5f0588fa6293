from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "path", "status_code"],
)

REMOTE_CALL_COUNT = Counter(
    "remote_content_requests_total",
    "Total number of remote content API requests",
    ["operation", "status"],
)

REMOTE_CALL_DURATION = Histogram(
    "remote_content_duration_seconds",
    "Duration of remote content API requests in seconds",
    ["operation"],
)

CACHE_HITS = Counter("cache_hits_total", "Total number of cache hits")
CACHE_MISSES = Counter("cache_misses_total", "Total number of cache misses")
CACHE_WRITE_FAILURES = Counter(
    "cache_write_failures_total", "Total number of rejected cache writes"
)

STALE_RESULTS_DISCARDED = Counter(
    "stale_results_discarded_total",
    "Results dropped because a newer request of the same family was issued",
    ["family"],
)

ACTIVE_SESSIONS = Gauge("storefront_active_sessions", "Number of open storefront sessions")
