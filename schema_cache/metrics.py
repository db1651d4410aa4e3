"""Prometheus metrics for the schema cache service."""

from prometheus_client import Counter, Info

# Application info
app_info = Info("schema_cache", "Schema cache application info")
app_info.info({"version": "0.1.0", "name": "schema-cache"})

# Schema delivery
schema_lookups_total = Counter(
    "schema_lookups_total",
    "Schema lookups by how they were resolved",
    ["result"],  # exact, fallback, missing
)

schema_updates_total = Counter(
    "schema_updates_total",
    "Schema writes",
    ["operation"],  # insert, update
)

# Drift detection
drift_signals_total = Counter(
    "drift_signals_total",
    "Content signals received from the embedded loader",
    ["drift_detected"],
)

drift_signals_cleared_total = Counter(
    "drift_signals_cleared_total",
    "Unprocessed drift signals marked processed by a schema update",
)

auth_failures_total = Counter(
    "auth_failures_total",
    "Rejected API key checks",
    ["reason"],  # missing, invalid
)

# Edge cache
edge_cache_requests_total = Counter(
    "edge_cache_requests_total",
    "Requests seen by the edge cache",
    ["status"],  # HIT, MISS, PASS
)

edge_cache_store_errors_total = Counter(
    "edge_cache_store_errors_total",
    "Background cache writes that failed",
)


def record_schema_lookup(result: str) -> None:
    schema_lookups_total.labels(result=result).inc()


def record_schema_update(created: bool) -> None:
    schema_updates_total.labels(operation="insert" if created else "update").inc()


def record_drift_signal(drift_detected: bool) -> None:
    drift_signals_total.labels(drift_detected=str(drift_detected).lower()).inc()


def record_signals_cleared(count: int) -> None:
    if count:
        drift_signals_cleared_total.inc(count)


def record_auth_failure(reason: str) -> None:
    auth_failures_total.labels(reason=reason).inc()


def record_edge_request(cache_status: str) -> None:
    edge_cache_requests_total.labels(status=cache_status).inc()


def record_edge_store_error() -> None:
    edge_cache_store_errors_total.inc()
