"""Reconciles parsed feed events against stored events."""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from processor.errors import ReconcileError
from processor.event_processor import EventProcessor
from processor.models import (
    ClassifiedEvent,
    FeedIntegration,
    RawFeedEvent,
    StoredEvent,
    SyncOutcome,
)

logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class SyncReconciler:
    """Replaces a feed's stored events when the parsed feed has changed.

    Change detection looks at event ids and counts only. When anything
    differs, every stored event for the feed is deleted and the windowed
    parse result is inserted in its place.
    """

    def __init__(
        self,
        event_store,
        processor: Optional[EventProcessor] = None,
        now: Callable[[], datetime] = _local_now,
    ):
        """
        Args:
            event_store: Store exposing list_by_feed, delete_by_feed,
                bulk_insert and update_last_sync
            processor: EventProcessor used for windowing and classification
            now: Clock returning the current timezone-aware instant
        """
        self.event_store = event_store
        self.processor = processor or EventProcessor()
        self.now = now

    def reconcile(
        self,
        integration: FeedIntegration,
        parsed_events: List[RawFeedEvent],
    ) -> SyncOutcome:
        """
        Bring stored events for a feed in line with a fresh parse.

        Args:
            integration: Feed integration being synced
            parsed_events: Events parsed from the feed

        Returns:
            SyncOutcome describing whether stored events were replaced

        Raises:
            ReconcileError: If reading or replacing stored events fails;
                last_sync is left untouched in that case
        """
        now = self.now()
        windowed = self.processor.filter_window(parsed_events, now)
        classified = self.processor.process_events(windowed)

        try:
            stored = self.event_store.list_by_feed(integration.id)
        except Exception as e:
            raise ReconcileError(
                f"Failed to load stored events: {e}", integration.id
            ) from e

        if not self.has_changed(classified, stored):
            logger.info(
                f"No changes for feed {integration.id} "
                f"({len(classified)} events), updating last sync only"
            )
            self.event_store.update_last_sync(integration.id, now)
            return SyncOutcome(changed=False, synced_count=len(classified))

        self._replace_events(integration, classified, now)
        self.event_store.update_last_sync(integration.id, now)

        logger.info(
            f"Replaced {len(stored)} stored events with {len(classified)} "
            f"events for feed {integration.id}"
        )
        return SyncOutcome(changed=True, synced_count=len(classified), events=classified)

    @staticmethod
    def has_changed(events: List[ClassifiedEvent], stored: List[StoredEvent]) -> bool:
        """
        Compare processed and stored events by id membership and count.

        Args:
            events: Classified events inside the relevance window
            stored: Events currently stored for the feed

        Returns:
            True if the stored events need replacing
        """
        if len(events) != len(stored):
            return True

        parsed_ids = {event.id for event in events}
        stored_ids = {event.external_event_id for event in stored}
        return bool(parsed_ids - stored_ids) or bool(stored_ids - parsed_ids)

    def _replace_events(
        self,
        integration: FeedIntegration,
        events: List[ClassifiedEvent],
        now: datetime,
    ) -> None:
        try:
            self.event_store.delete_by_feed(integration.id)
        except Exception as e:
            raise ReconcileError(
                f"Failed to delete stored events: {e}", integration.id
            ) from e

        stored_events = [self.to_stored_event(integration, event, now) for event in events]

        try:
            self.event_store.bulk_insert(stored_events)
        except Exception as e:
            logger.error(
                f"Deleted events for feed {integration.id} but insert failed: {e}",
                extra={'feed_integration_id': integration.id},
            )
            raise ReconcileError(
                f"Failed to insert {len(stored_events)} events: {e}", integration.id
            ) from e

    @staticmethod
    def to_stored_event(
        integration: FeedIntegration,
        event: ClassifiedEvent,
        created_at: datetime,
    ) -> StoredEvent:
        """Map a classified event to its stored shape for a feed."""
        return StoredEvent(
            feed_integration_id=integration.id,
            external_event_id=event.id,
            user_id=integration.user_id,
            title=event.title,
            start_time=event.start_time,
            end_time=event.end_time,
            classification=event.classification,
            description=event.description,
            location=event.location,
            attendee_count=event.attendee_count,
            created_at=created_at,
        )
