from prometheus_client import Counter, Histogram, make_asgi_app

# Route templates (e.g. /api/v1/sessions/{session_id}) keep label cardinality low
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"],
)

LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "route"],
)

UPLOADS = Counter(
    "image_uploads_total",
    "Settled image transfers",
    ["strategy", "outcome"],
)

UPLOAD_BYTES = Histogram(
    "image_upload_bytes",
    "Size of successfully uploaded images in bytes",
    ["strategy"],
    buckets=(
        64 * 1024,
        256 * 1024,
        1024 * 1024,
        5 * 1024 * 1024,
        10 * 1024 * 1024,
        100 * 1024 * 1024,
        1024 * 1024 * 1024,
    ),
)

MULTIPART_ABORTS = Counter(
    "multipart_aborts_total",
    "Abort requests issued for failed multipart sessions",
    ["outcome"],
)

DELETES = Counter(
    "image_deletes_total",
    "Delete-by-key requests",
    ["outcome"],
)

# ASGI app served under /metrics
metrics_app = make_asgi_app()
