"""
Prometheus Metrics Exporter
Lifecycle, broker and realtime metrics for Prometheus scraping
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, REGISTRY
from fastapi import APIRouter, Response

# Create metrics router
router = APIRouter(prefix="/metrics", tags=["monitoring"])

# =============================================================================
# LIFECYCLE METRICS
# =============================================================================

notification_transitions_total = Counter(
    'notification_hub_transitions_total',
    'Total number of notification status transitions',
    ['status']
)

processing_duration_seconds = Histogram(
    'notification_hub_processing_duration_seconds',
    'Time taken by the processing step of a notification',
    ['outcome'],
    buckets=(0.1, 0.5, 1.0, 1.5, 2.0, 3.0, 5.0, 10.0)
)

# =============================================================================
# BROKER METRICS
# =============================================================================

broker_publish_total = Counter(
    'notification_hub_broker_publish_total',
    'Total number of broker publish attempts',
    ['channel', 'result']
)

consumer_messages_total = Counter(
    'notification_hub_consumer_messages_total',
    'Total number of messages taken off the work queue',
    ['outcome']
)

# =============================================================================
# WEBSOCKET METRICS
# =============================================================================

observers_connected = Gauge(
    'notification_hub_observers_connected',
    'Number of connected realtime observers'
)

observer_messages_dropped_total = Counter(
    'notification_hub_observer_messages_dropped_total',
    'Messages not delivered because the observer was evicted',
    ['reason']
)

# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/prometheus")
async def get_metrics():
    """
    Prometheus metrics endpoint
    Returns metrics in Prometheus text format
    """
    metrics_output = generate_latest(REGISTRY)
    return Response(content=metrics_output, media_type="text/plain; charset=utf-8")


# =============================================================================
# METRIC RECORDING FUNCTIONS
# =============================================================================

def record_transition(status: str):
    """Record a notification status transition"""
    notification_transitions_total.labels(status=status).inc()


def record_processing(outcome: str, duration: float):
    """Record processing step outcome and duration"""
    processing_duration_seconds.labels(outcome=outcome).observe(duration)


def record_publish(channel: str, success: bool):
    """Record broker publish attempt"""
    broker_publish_total.labels(channel=channel, result='ok' if success else 'failed').inc()


def record_consumer_message(outcome: str):
    """Record a consumed message outcome (handled, failed, dropped)"""
    consumer_messages_total.labels(outcome=outcome).inc()


def record_observer_connection(delta: int):
    """Record observer connection change"""
    if delta > 0:
        observers_connected.inc(delta)
    else:
        observers_connected.dec(abs(delta))


def record_observer_drop(reason: str):
    """Record an evicted observer"""
    observer_messages_dropped_total.labels(reason=reason).inc()
