"""Prometheus metrics shared by the HTTP layer and the auth services"""

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "jobboard_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "jobboard_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
AUTH_EVENTS = Counter(
    "jobboard_auth_events_total",
    "Session lifecycle events",
    ["event"],
)
