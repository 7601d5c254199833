from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

REQUEST_COUNT = Counter(
    "http_requests_total",
    "HTTP requests by route template and status",
    ["method", "path", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "Time until the response headers were sent",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

DOMAIN_EVENTS = Counter(
    "marketplace_events_total",
    "Marketplace domain events",
    ["event"],
)

STORAGE_ERRORS = Counter(
    "marketplace_storage_errors_total",
    "Database operations that failed and were reported to the caller",
    ["path"],
)

OPEN_MESSAGE_STREAMS = Gauge(
    "marketplace_open_message_streams",
    "Booking conversation streams currently subscribed",
)

DROPPED_STREAM_MESSAGES = Counter(
    "marketplace_dropped_stream_messages_total",
    "Pushed messages dropped because a subscriber fell behind",
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
