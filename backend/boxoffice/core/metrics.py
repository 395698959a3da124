"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

reservation_attempts = Counter(
    'reservation_attempts_total',
    'Seat reservation calls by outcome',
    ['outcome']  # success, or the error code that ended the call
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'Seat reservation latency including retries',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

seats_reserved = Counter(
    'seats_reserved_total',
    'Tickets created by committed reservations'
)

seats_released = Counter(
    'seats_released_total',
    'Tickets released back to inventory',
    ['reason']  # cancelled, refunded
)

transaction_retries = Counter(
    'transaction_retries_total',
    'Transaction attempts rolled back and retried after a transient conflict',
    ['operation']
)

notifications = Counter(
    'ticket_notifications_total',
    'Ticket notification deliveries',
    ['result']  # sent, retried, failed
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation(outcome: str, seats: int = 0):
    """Record a finished reservation call. Outcome: success or an error code."""
    reservation_attempts.labels(outcome=outcome).inc()
    if outcome == "success" and seats:
        seats_reserved.inc(seats)


def record_release(reason: str, count: int):
    if count:
        seats_released.labels(reason=reason).inc(count)


def record_retry(operation: str):
    transaction_retries.labels(operation=operation).inc()


def record_notification(result: str):
    notifications.labels(result=result).inc()
