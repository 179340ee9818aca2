"""Prometheus metrics definitions for the summary pipeline."""

from prometheus_client import Counter, Gauge, Histogram

# -- Fetch cycles --
FETCH_CYCLES = Counter(
    "health_digest_fetch_cycles_total",
    "Total fetch cycles by outcome",
    ["status"],
)
SNAPSHOT_PENDING_QUERIES = Gauge(
    "health_digest_snapshot_pending_queries",
    "Outstanding source queries in the current fetch cycle",
)

# -- Sources --
SOURCE_QUERY_FAILURES = Counter(
    "health_digest_source_query_failures_total",
    "Source queries absorbed as no data",
    ["source"],
)

# -- Chat API --
CHAT_REQUESTS = Counter(
    "health_digest_chat_requests_total",
    "Total chat-completion requests",
    ["status"],
)
CHAT_LATENCY_SECONDS = Histogram(
    "health_digest_chat_latency_seconds",
    "Chat-completion round-trip latency",
    buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0),
)
