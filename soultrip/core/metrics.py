"""
Prometheus metrics for the booking lifecycle, search inference and cache.
Exposed at the /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking lifecycle
booking_outcomes = Counter(
    'booking_outcomes_total',
    'Booking create/reactivate attempts by outcome',
    ['outcome']  # created, reactivated, error
)

cancellation_outcomes = Counter(
    'booking_cancellation_outcomes_total',
    'Booking cancellations by outcome',
    ['outcome']  # deleted, soft_cancelled, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Latency of booking protocol calls',
    ['operation'],  # book, cancel
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_refusals = Counter(
    'booking_refusals_total',
    'Book requests refused before reaching storage',
    ['reason']  # sign_in_required, wrong_role, unavailable, sold_out, already_booked
)

# Search inference
inference_requests = Counter(
    'search_inference_requests_total',
    'Search filter inference requests by source',
    ['source']  # llm, heuristic
)

# Cache
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Render the default registry in the Prometheus text format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_outcome(outcome: str):
    booking_outcomes.labels(outcome=outcome).inc()


def record_cancellation_outcome(outcome: str):
    cancellation_outcomes.labels(outcome=outcome).inc()


def record_booking_refusal(reason: str):
    booking_refusals.labels(reason=reason).inc()


def record_inference(source: str):
    inference_requests.labels(source=source).inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
