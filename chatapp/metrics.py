import logging
from prometheus_client import Counter, start_http_server

logger = logging.getLogger(__name__)

MESSAGES_CREATED = Counter(
    'chat_messages_created_total',
    'Messages persisted',
    ['private'],
)

EVENTS_PUBLISHED = Counter(
    'chat_events_published_total',
    'Realtime new-message events by publish outcome',
    ['outcome'],
)


def init_metrics(port: int = 8001):
    """Initialize Prometheus metrics server"""
    try:
        start_http_server(port)
        logger.info(f"Prometheus metrics server started on port {port}")
    except Exception as e:
        logger.warning(f'Prometheus start failed: {e}')
