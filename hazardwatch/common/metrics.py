"""Prometheus metrics for monitoring."""
from prometheus_client import Counter, Histogram, Gauge

# Classification metrics
posts_classified_total = Counter(
    'posts_classified_total',
    'Total number of social posts classified',
    ['relevant']
)

classification_duration_seconds = Histogram(
    'classification_duration_seconds',
    'Time spent classifying a post'
)

# Ingestion metrics
posts_ingested_total = Counter(
    'posts_ingested_total',
    'Total number of social posts ingested',
    ['status']
)

# Realtime metrics
websocket_connections = Gauge(
    'websocket_connections',
    'Current number of registered realtime connections'
)

realtime_messages_total = Counter(
    'realtime_messages_total',
    'Total number of realtime messages sent',
    ['message_type', 'status']
)

snapshot_cycles_total = Counter(
    'snapshot_cycles_total',
    'Total number of scheduled dashboard snapshot cycles',
    ['status']
)

# Notification metrics
notifications_created_total = Counter(
    'notifications_created_total',
    'Total number of notifications created',
    ['type']
)

# Error metrics
errors_total = Counter(
    'errors_total',
    'Total number of errors',
    ['component', 'error_type']
)
