"""Prometheus metrics: request count by route/status, latency, grants issued, library mutations."""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total requests",
    ["method", "path", "status_class"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency",
    ["method", "path"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)
GRANT_TOTAL = Counter(
    "library_access_grants_total",
    "Presigned URLs issued",
    ["operation"],  # read | write
)
MUTATION_TOTAL = Counter(
    "library_mutations_total",
    "Rename/delete attempts",
    ["operation", "result"],  # rename | delete ; success | conflict | failure
)


def _status_class(status: int) -> str:
    if status < 200:
        return "1xx"
    if status < 300:
        return "2xx"
    if status < 400:
        return "3xx"
    if status < 500:
        return "4xx"
    return "5xx"


def record_request(method: str, path: str, status_code: int, latency_seconds: float) -> None:
    path = path or "/"
    # Blob paths embed object keys; collapse them to avoid high cardinality
    if path.startswith("/api/blobs/"):
        path = "/api/blobs/{key}"
    sc = _status_class(status_code)
    REQUEST_COUNT.labels(method=method, path=path, status_class=sc).inc()
    REQUEST_LATENCY.labels(method=method, path=path).observe(latency_seconds)


def record_grant(operation: str) -> None:
    GRANT_TOTAL.labels(operation=operation).inc()


def record_mutation(operation: str, result: str) -> None:
    MUTATION_TOTAL.labels(operation=operation, result=result).inc()


def get_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
