"""Sync orchestration across a user's calendar feeds."""
import logging
from datetime import datetime
from typing import Callable, Optional

from feeds.ics_fetcher import IcsFeedFetcher
from feeds.ics_parser import IcsParser
from processor.metrics_trigger import MetricsRecomputeTrigger
from processor.models import FeedIntegration, SyncOutcome, SyncSummary
from processor.sync_reconciler import SyncReconciler

logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class CalendarSyncService:
    """Runs fetch, parse, reconcile and recompute for each feed of a user.

    Feeds are processed one after another. A failing feed is counted and
    logged without affecting the others.
    """

    def __init__(
        self,
        event_store,
        recompute_service,
        url_cipher,
        fetcher: Optional[IcsFeedFetcher] = None,
        parser: Optional[IcsParser] = None,
        now: Callable[[], datetime] = _local_now,
    ):
        self.event_store = event_store
        self.url_cipher = url_cipher
        self.fetcher = fetcher or IcsFeedFetcher()
        self.parser = parser or IcsParser()
        self.now = now
        self.reconciler = SyncReconciler(event_store, now=now)
        self.metrics_trigger = MetricsRecomputeTrigger(recompute_service)

    def sync_all(self, user_id: str) -> SyncSummary:
        """
        Sync every active feed integration of a user.

        Never raises; failures are reported in the returned summary.

        Args:
            user_id: User whose feeds are synced

        Returns:
            SyncSummary with success and failure counts
        """
        summary = SyncSummary()
        logger.info(f"Starting calendar sync for user {user_id}")

        try:
            integrations = self.event_store.list_active_feed_integrations(user_id)
        except Exception as e:
            logger.error(
                f"Error loading feed integrations for user {user_id}: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True,
            )
            summary.errors.append(f"Failed to load feed integrations: {e}")
            return summary

        if not integrations:
            logger.info(f"No feed integrations found for user {user_id}")
            return summary

        for integration in integrations:
            try:
                outcome = self.sync_feed(integration)
            except Exception as e:
                summary.failed += 1
                summary.errors.append(f"Feed {integration.id}: {e}")
                logger.error(
                    f"Error syncing feed {integration.id}: {e}",
                    extra={'feed_integration_id': integration.id, 'error_type': type(e).__name__},
                    exc_info=True,
                )
                continue

            summary.succeeded += 1
            summary.synced_events += outcome.synced_count

        logger.info(
            f"Calendar sync finished for user {user_id}: "
            f"{summary.succeeded} succeeded, {summary.failed} failed",
            extra={
                'succeeded': summary.succeeded,
                'failed': summary.failed,
                'synced_events': summary.synced_events,
            },
        )
        return summary

    def sync_feed(self, integration: FeedIntegration) -> SyncOutcome:
        """
        Sync one feed integration.

        Args:
            integration: Feed integration to sync

        Returns:
            SyncOutcome of the reconciliation

        Raises:
            FetchError: If the URL cannot be decrypted or the feed fetched
            ReconcileError: If stored events could not be replaced
        """
        url = self.url_cipher.decrypt(integration.calendar_url)
        raw_text = self.fetcher.fetch(url)
        parsed_events = self.parser.parse(raw_text)

        outcome = self.reconciler.reconcile(integration, parsed_events)
        self.metrics_trigger.maybe_recompute(integration.user_id, outcome, self.now().date())
        return outcome

    def register_feed(self, user_id: str, calendar_url: str) -> FeedIntegration:
        """
        Store a new ICS feed for a user with its URL encrypted.

        Args:
            user_id: Owner of the feed
            calendar_url: Plaintext feed URL

        Returns:
            The created FeedIntegration
        """
        encrypted_url = self.url_cipher.encrypt(calendar_url)
        return self.event_store.create_feed_integration(user_id, encrypted_url)
