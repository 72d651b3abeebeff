from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path"],
)

BOOKING_DECISIONS = Counter(
    "booking_decisions_total",
    "Outcome of booking overlap evaluations",
    ["outcome"],
)

NOTIFICATIONS_SENT = Counter(
    "booking_notifications_total",
    "Booking notifications handed to the notifier",
    ["kind", "backend"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
