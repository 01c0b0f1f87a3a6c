"""
Metrics instrumentation for the registration workflow.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Registration workflow
registration_attempts = Counter(
    'registration_attempts_total',
    'Registration attempts by outcome',
    ['outcome']  # success, sold_out, invalid, closed, persistence_failure
)

registration_latency = Histogram(
    'registration_latency_seconds',
    'End-to-end registration workflow latency',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Spot reservation
reservation_decisions = Counter(
    'spot_reservations_total',
    'Spot reservation decisions',
    ['result']  # granted, rejected, unlimited
)

spot_releases = Counter(
    'spot_releases_total',
    'Spots returned to event inventory',
    ['reason']  # compensation, cancellation, hold_expired
)

# Hold expiry sweeper
holds_swept = Counter(
    'holds_swept_total',
    'Expired holds cancelled and released by the sweeper'
)

sweep_failures = Counter(
    'hold_sweep_failures_total',
    'Individual holds the sweeper failed to release'
)

sweep_duration = Histogram(
    'hold_sweep_duration_seconds',
    'Duration of one sweep pass',
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0]
)

# Notifications
notifications_sent = Counter(
    'notifications_total',
    'Outbound email notifications',
    ['kind', 'result']  # confirmation/invite, sent/failed
)

# Cache
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_registration_attempt(outcome: str):
    registration_attempts.labels(outcome=outcome).inc()


def record_reservation(result: str):
    """Result: granted, rejected, unlimited"""
    reservation_decisions.labels(result=result).inc()


def record_release(reason: str, tickets: int = 1):
    spot_releases.labels(reason=reason).inc(tickets)


def record_notification(kind: str, sent: bool):
    notifications_sent.labels(kind=kind, result="sent" if sent else "failed").inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
