"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own a
behaviour import the metric and increment it at the point of action.

HTTP metrics are fed by MetricsMiddleware.  Payment metrics are labelled by
outcome so a dashboard can show, for instance, the ratio of signature
mismatches to verified payments without parsing logs.
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
    # Checkout and verify include a gateway round-trip, hence the upper buckets.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Payment and progress metrics
# ---------------------------------------------------------------------------

PAYMENT_ORDERS = Counter(
    "payment_orders_total",
    "Gateway order creation attempts by result",
    ["result"],  # created|gateway_error
)

PAYMENT_VERIFICATIONS = Counter(
    "payment_verifications_total",
    "Client payment verifications by result",
    ["result"],  # verified|signature_mismatch|intent_mismatch|duplicate
)

PAYMENT_WEBHOOKS = Counter(
    "payment_webhooks_total",
    "Gateway webhook deliveries by event type and result",
    # result: processed|duplicate|ignored|malformed|invalid_signature
    ["event", "result"],
)

LECTURE_COMPLETIONS = Counter(
    "lecture_completions_total",
    "Lecture completion marks by whether they changed the completed set",
    ["result"],  # added|already_completed
)
