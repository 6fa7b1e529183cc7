"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# Admission metrics
admission_attempts = Counter(
    'admission_attempts_total',
    'Total admission attempts',
    ['event_type', 'result']  # admitted, or the rejection error code
)

admission_latency = Histogram(
    'admission_latency_seconds',
    'Admission request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# HTTP metrics
http_requests = Counter(
    'http_requests_total',
    'API requests by route template',
    ['method', 'route', 'status_code']
)

http_request_latency = Histogram(
    'http_request_latency_seconds',
    'API request latency by route template',
    ['route'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Ledger metrics
ledger_retries = Counter(
    'ledger_retry_attempts_total',
    'Ledger reservation retries due to version conflicts'
)

ledger_releases = Counter(
    'ledger_releases_total',
    'Units released back to the ledger',
    ['reason']  # cancelled, rejected, failed
)

# Lifecycle / payments / tickets
status_transitions = Counter(
    'event_status_transitions_total',
    'Event lifecycle transitions',
    ['to_status']
)

payment_decisions = Counter(
    'payment_decisions_total',
    'Payment review decisions',
    ['decision', 'applied']  # applied: true/false (no-op)
)

tickets_issued = Counter(
    'tickets_issued_total',
    'Tickets minted (idempotent re-issues excluded)'
)

# Attendance
attendance_marks = Counter(
    'attendance_marks_total',
    'Attendance mark requests',
    ['source', 'result']  # scan/manual, changed/noop
)

# Notifier
notifications = Counter(
    'notifications_total',
    'Outbound notifications',
    ['result']  # sent, failed, skipped
)

# Admission gate
redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)

redis_circuit_breaker_open = Gauge(
    'redis_circuit_breaker_open',
    'Redis circuit breaker state (1=open, 0=closed)'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint body."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_admission(event_type: str, result: str):
    """Record admission decision. Result: admitted or an error code."""
    admission_attempts.labels(event_type=event_type, result=result).inc()


def record_attendance(source: str, changed: bool):
    result = "changed" if changed else "noop"
    attendance_marks.labels(source=source, result=result).inc()


def record_notification(result: str):
    notifications.labels(result=result).inc()
