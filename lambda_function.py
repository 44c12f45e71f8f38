"""AWS Lambda handler for calendar feed sync."""
import json
import logging
import os
import time
from typing import Dict, Any

from feeds.ics_fetcher import IcsFeedFetcher
from processor.calendar_sync import CalendarSyncService
from storage.analytics_manager import DailyAnalyticsManager
from storage.event_store import DynamoDBEventStore
from storage.url_cipher import CalendarUrlCipher


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def build_service() -> CalendarSyncService:
    """Wire the sync service from environment configuration."""
    events_table = os.environ.get('EVENTS_TABLE_NAME', 'calendar-events')
    integrations_table = os.environ.get('INTEGRATIONS_TABLE_NAME', 'calendar-integrations')
    analytics_table = os.environ.get('ANALYTICS_TABLE_NAME', 'daily-analytics')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    max_retries = int(os.environ.get('MAX_RETRIES', '3'))

    event_store = DynamoDBEventStore(
        events_table_name=events_table,
        integrations_table_name=integrations_table,
    )
    return CalendarSyncService(
        event_store=event_store,
        recompute_service=DailyAnalyticsManager(analytics_table, event_store),
        url_cipher=CalendarUrlCipher(
            endpoint_url=os.environ.get('CRYPTO_ENDPOINT_URL') or None,
            api_key=os.environ.get('CRYPTO_API_KEY') or None,
        ),
        fetcher=IcsFeedFetcher(
            timeout=timeout_seconds,
            max_retries=max_retries,
            proxy_url=os.environ.get('FETCH_PROXY_URL') or None,
        ),
    )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for calendar feed sync.

    Args:
        event: {"user_id": ...} to sync a user's feeds, or
            {"action": "register", "user_id": ..., "calendar_url": ...}
            to add a feed
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    start_time = time.time()
    user_id = (event or {}).get('user_id')
    action = (event or {}).get('action', 'sync')

    if not user_id:
        logger.warning("Invocation without user_id")
        return _response(400, {'message': 'Missing user_id'})

    logger.info(f"Lambda execution started", extra={'user_id': user_id, 'action': action})

    try:
        service = build_service()

        if action == 'register':
            calendar_url = event.get('calendar_url')
            if not calendar_url:
                return _response(400, {'message': 'Missing calendar_url'})
            integration = service.register_feed(user_id, calendar_url)
            return _response(200, {
                'message': 'Feed registered',
                'feed_integration_id': integration.id
            })

        if action != 'sync':
            return _response(400, {'message': f"Invalid action: {action}"})

        summary = service.sync_all(user_id)
        duration = time.time() - start_time

        logger.info(
            f"Lambda execution completed",
            extra={
                'duration_seconds': round(duration, 2),
                'feeds_succeeded': summary.succeeded,
                'feeds_failed': summary.failed,
                'events_synced': summary.synced_events
            }
        )

        return _response(200, {
            'message': 'Sync completed',
            'statistics': {
                'feeds_succeeded': summary.succeeded,
                'feeds_failed': summary.failed,
                'events_synced': summary.synced_events,
                'duration_seconds': round(duration, 2)
            },
            'errors': summary.errors
        })

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return _response(500, {
            'message': 'Sync failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })
