"""DynamoDB store for calendar events and feed integrations."""
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from processor.models import EventClassification, FeedIntegration, StoredEvent

logger = logging.getLogger(__name__)


def to_timestamp(value: datetime) -> str:
    """Serialize an aware datetime as a sortable UTC ISO 8601 string."""
    return value.astimezone(timezone.utc).isoformat(timespec='seconds')


def from_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class DynamoDBEventStore:
    """Event and feed integration storage backed by DynamoDB.

    Events are keyed by (feed_integration_id, external_event_id) and
    indexed by user_id/start_time through the ``user-index`` GSI. Feed
    integrations are keyed by id with their own ``user-index`` GSI.
    """

    BATCH_SIZE = 25  # DynamoDB batch operation limit
    USER_INDEX = 'user-index'

    def __init__(
        self,
        events_table_name: str,
        integrations_table_name: str,
        region_name: Optional[str] = None,
    ):
        """
        Initialize DynamoDB resource and table references.

        Args:
            events_table_name: Name of the events table
            integrations_table_name: Name of the feed integrations table
            region_name: Optional AWS region
        """
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.events_table = self.dynamodb.Table(events_table_name)
        self.integrations_table = self.dynamodb.Table(integrations_table_name)
        logger.info(
            f"Initialized DynamoDBEventStore for tables: "
            f"{events_table_name}, {integrations_table_name}"
        )

    def _query_all(self, table, **kwargs) -> List[dict]:
        response = table.query(**kwargs)
        items = response.get('Items', [])

        while 'LastEvaluatedKey' in response:
            response = table.query(ExclusiveStartKey=response['LastEvaluatedKey'], **kwargs)
            items.extend(response.get('Items', []))

        return items

    def list_by_feed(self, feed_integration_id: str) -> List[StoredEvent]:
        """
        Retrieve all stored events for a feed integration.

        Args:
            feed_integration_id: Feed integration id

        Returns:
            List of StoredEvent objects
        """
        try:
            items = self._query_all(
                self.events_table,
                KeyConditionExpression=Key('feed_integration_id').eq(feed_integration_id),
            )
        except ClientError as e:
            logger.error(f"Error querying events for feed {feed_integration_id}: {e}")
            raise

        events = [self._item_to_stored_event(item) for item in items]
        logger.info(f"Retrieved {len(events)} stored events for feed {feed_integration_id}")
        return events

    def list_by_user(self, user_id: str, start: datetime, end: datetime) -> List[StoredEvent]:
        """
        Retrieve a user's events starting in [start, end).

        Args:
            user_id: Owner of the events
            start: Inclusive lower bound on start time
            end: Exclusive upper bound on start time

        Returns:
            List of StoredEvent objects ordered by start time
        """
        try:
            items = self._query_all(
                self.events_table,
                IndexName=self.USER_INDEX,
                KeyConditionExpression=(
                    Key('user_id').eq(user_id)
                    & Key('start_time').between(to_timestamp(start), to_timestamp(end))
                ),
            )
        except ClientError as e:
            logger.error(f"Error querying events for user {user_id}: {e}")
            raise

        events = [self._item_to_stored_event(item) for item in items]
        return [event for event in events if event.start_time < end]

    def delete_by_feed(self, feed_integration_id: str) -> int:
        """
        Delete every stored event of a feed integration.

        Args:
            feed_integration_id: Feed integration id

        Returns:
            Count of deleted events

        Raises:
            ClientError: If a delete batch fails
        """
        items = self._query_all(
            self.events_table,
            KeyConditionExpression=Key('feed_integration_id').eq(feed_integration_id),
            ProjectionExpression='feed_integration_id, external_event_id',
        )
        if not items:
            return 0

        logger.info(f"Deleting {len(items)} events for feed {feed_integration_id}")
        deleted_count = 0

        for i in range(0, len(items), self.BATCH_SIZE):
            batch = items[i:i + self.BATCH_SIZE]
            try:
                with self.events_table.batch_writer() as writer:
                    for item in batch:
                        writer.delete_item(Key={
                            'feed_integration_id': item['feed_integration_id'],
                            'external_event_id': item['external_event_id'],
                        })
                deleted_count += len(batch)
            except ClientError as e:
                logger.error(f"Error deleting batch {i // self.BATCH_SIZE + 1}: {e}")
                raise

        logger.info(f"Successfully deleted {deleted_count} events")
        return deleted_count

    def bulk_insert(self, events: List[StoredEvent]) -> int:
        """
        Write events to DynamoDB in batches of 25 items.

        Args:
            events: List of StoredEvent objects to write

        Returns:
            Count of written events

        Raises:
            ClientError: If a write batch fails
        """
        if not events:
            return 0

        logger.info(f"Writing {len(events)} events to DynamoDB")
        written_count = 0

        for i in range(0, len(events), self.BATCH_SIZE):
            batch = events[i:i + self.BATCH_SIZE]
            try:
                with self.events_table.batch_writer() as writer:
                    for event in batch:
                        writer.put_item(Item=self._stored_event_to_item(event))
                written_count += len(batch)
            except ClientError as e:
                logger.error(f"Error writing batch {i // self.BATCH_SIZE + 1}: {e}")
                raise

        logger.info(f"Successfully wrote {written_count} events")
        return written_count

    def list_active_feed_integrations(self, user_id: str) -> List[FeedIntegration]:
        """
        Retrieve a user's active ICS feed integrations.

        Args:
            user_id: Owner of the integrations

        Returns:
            List of FeedIntegration objects with a calendar URL
        """
        try:
            items = self._query_all(
                self.integrations_table,
                IndexName=self.USER_INDEX,
                KeyConditionExpression=Key('user_id').eq(user_id),
                FilterExpression=Attr('is_active').eq(True) & Attr('provider').eq('ics'),
            )
        except ClientError as e:
            logger.error(f"Error querying feed integrations for user {user_id}: {e}")
            raise

        integrations = [
            self._item_to_integration(item) for item in items
            if item.get('calendar_url')
        ]
        logger.info(f"Found {len(integrations)} active feed integrations for user {user_id}")
        return integrations

    def create_feed_integration(
        self,
        user_id: str,
        calendar_url: str,
        provider: str = 'ics',
    ) -> FeedIntegration:
        """
        Create an active feed integration.

        Args:
            user_id: Owner of the integration
            calendar_url: Feed URL, usually encrypted
            provider: Integration provider

        Returns:
            The created FeedIntegration
        """
        integration = FeedIntegration(
            id=str(uuid.uuid4()),
            user_id=user_id,
            calendar_url=calendar_url,
            provider=provider,
            is_active=True,
        )
        self.integrations_table.put_item(Item={
            'id': integration.id,
            'user_id': integration.user_id,
            'calendar_url': integration.calendar_url,
            'provider': integration.provider,
            'is_active': integration.is_active,
            'created_at': to_timestamp(datetime.now(timezone.utc)),
        })
        logger.info(f"Created feed integration {integration.id} for user {user_id}")
        return integration

    def update_last_sync(self, feed_integration_id: str, instant: datetime) -> None:
        """
        Record the last sync time of a feed integration.

        Args:
            feed_integration_id: Feed integration id
            instant: Sync time
        """
        self.integrations_table.update_item(
            Key={'id': feed_integration_id},
            UpdateExpression='SET last_sync = :last_sync',
            ExpressionAttributeValues={':last_sync': to_timestamp(instant)},
        )

    def _item_to_stored_event(self, item: dict) -> StoredEvent:
        return StoredEvent(
            feed_integration_id=item['feed_integration_id'],
            external_event_id=item['external_event_id'],
            user_id=item['user_id'],
            title=item['title'],
            start_time=from_timestamp(item['start_time']),
            end_time=from_timestamp(item['end_time']),
            classification=EventClassification(item.get('classification', 'meeting')),
            description=item.get('description'),
            location=item.get('location'),
            attendee_count=int(item.get('attendee_count', 0)),
            created_at=from_timestamp(item.get('created_at')),
        )

    def _stored_event_to_item(self, event: StoredEvent) -> dict:
        item = {
            'feed_integration_id': event.feed_integration_id,
            'external_event_id': event.external_event_id,
            'user_id': event.user_id,
            'title': event.title,
            'start_time': to_timestamp(event.start_time),
            'end_time': to_timestamp(event.end_time),
            'classification': EventClassification(event.classification).value,
            'attendee_count': event.attendee_count,
        }

        # Add optional fields if present
        if event.description:
            item['description'] = event.description
        if event.location:
            item['location'] = event.location
        if event.created_at:
            item['created_at'] = to_timestamp(event.created_at)

        return item

    def _item_to_integration(self, item: dict) -> FeedIntegration:
        return FeedIntegration(
            id=item['id'],
            user_id=item['user_id'],
            calendar_url=item.get('calendar_url', ''),
            provider=item.get('provider', 'ics'),
            is_active=bool(item.get('is_active', False)),
            last_sync=from_timestamp(item.get('last_sync')),
        )
