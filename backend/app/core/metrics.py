"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, unavailable, inactive
)

booking_cancellations = Counter(
    'booking_cancellations_total',
    'Bookings cancelled',
    ['payment_status']  # payment status before cancellation
)

# Payment metrics
payment_reconciliations = Counter(
    'payment_reconciliations_total',
    'Payment reconciliation outcomes',
    ['source', 'result']  # verify/webhook/manual, completed/duplicate/oversold/failed
)

payment_gateway_errors = Counter(
    'payment_gateway_errors_total',
    'Payment provider call failures',
    ['operation', 'kind']  # timeout, provider
)

webhook_rejections = Counter(
    'payment_webhook_rejections_total',
    'Webhook deliveries rejected for a bad signature'
)

# Inventory metrics
inventory_conflicts = Counter(
    'inventory_conflicts_total',
    'Conditional inventory updates that matched no row',
    ['operation']  # decrement, restore
)

# Reminder metrics
reminders_sent = Counter(
    'event_reminders_sent_total',
    'Reminder notifications sent by the sweep'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# Convenience functions for instrumentation
def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, unavailable, inactive"""
    booking_attempts.labels(status=status).inc()


def record_reconciliation(source: str, result: str):
    payment_reconciliations.labels(source=source, result=result).inc()


def record_gateway_error(operation: str, kind: str):
    payment_gateway_errors.labels(operation=operation, kind=kind).inc()


def record_inventory_conflict(operation: str):
    inventory_conflicts.labels(operation=operation).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
