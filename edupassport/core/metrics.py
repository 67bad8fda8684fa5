"""Application metrics using the Prometheus client library.

All metrics live here so there is one inventory of what the service
measures.  Modules import the metric they own and increment it at the
point of action.

HTTP metrics are populated by MetricsMiddleware.  The registry metrics
answer the questions an operator actually has about this system:

  - How often do creates / transitions fail, and with which error?
      registry_operations_total{operation="create", result="BackendFailure"}
  - Is the index pointing at records that are gone or corrupt?
      registry_listing_skips_total{reason="malformed"}
  - Are owners declining the reveal signature prompt?
      reveal_attempts_total{result="UserRejected"}
  - Is the contract store itself flaky?
      blob_store_operations_total{operation="set", result="error"}
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # Contract-backed stores are slow: a write waits on a transaction.
    # The upper buckets cover that; the lower ones cover in-memory/Redis.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0, 30.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Registry metrics
# ---------------------------------------------------------------------------

REGISTRY_OPERATIONS = Counter(
    "registry_operations_total",
    "Registry operations by name and outcome",
    ["operation", "result"],  # result: "ok" or the error class name
)

LISTING_SKIPS = Counter(
    "registry_listing_skips_total",
    "Index entries skipped while listing credentials",
    ["reason"],  # "missing", "unreadable", "malformed"
)

REVEAL_ATTEMPTS = Counter(
    "reveal_attempts_total",
    "Score reveal attempts by outcome",
    ["result"],
)

BLOB_STORE_OPERATIONS = Counter(
    "blob_store_operations_total",
    "Blob store calls by operation and outcome",
    ["operation", "result"],  # operation: "get" | "set"; result: "ok" | "error"
)
