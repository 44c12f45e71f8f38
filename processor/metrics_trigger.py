"""Triggers daily aggregate recomputation after a feed changes."""
import logging
from datetime import date, timedelta
from typing import List, Optional, Tuple

from processor.models import ClassifiedEvent, SyncOutcome

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 30


def refresh_window(events: List[ClassifiedEvent], today: date) -> Optional[Tuple[date, date]]:
    """
    Compute the date range whose aggregates a changed feed affects.

    Args:
        events: Windowed events just stored for the feed
        today: Current local date

    Returns:
        Tuple of (start, end) dates, or None when nothing needs refreshing
    """
    if not events:
        return None

    earliest = min(event.start_time.astimezone().date() for event in events)
    latest = max(event.end_time.astimezone().date() for event in events)

    start = max(today - timedelta(days=LOOKBACK_DAYS), min(earliest, today))
    end = min(latest, today)

    if start > end:
        return None
    return start, end


class MetricsRecomputeTrigger:
    """Calls the aggregate recompute service for changed feeds."""

    def __init__(self, recompute_service):
        """
        Args:
            recompute_service: Service exposing recompute(user_id, start, end)
        """
        self.recompute_service = recompute_service

    def maybe_recompute(self, user_id: str, outcome: SyncOutcome, today: date) -> bool:
        """
        Recompute aggregates if the reconciliation stored new events.

        Failures are logged and swallowed; aggregates stay stale until the
        next successful trigger.

        Args:
            user_id: Owner of the feed
            outcome: Result of reconciling the feed
            today: Current local date

        Returns:
            True if recomputation ran successfully
        """
        if not outcome.changed:
            return False

        window = refresh_window(outcome.events, today)
        if window is None:
            logger.info(f"Skipping aggregate recompute for user {user_id}: empty window")
            return False

        start, end = window
        try:
            self.recompute_service.recompute(user_id, start, end)
        except Exception as e:
            logger.warning(
                f"Failed to recompute daily aggregates for user {user_id} "
                f"({start} to {end}): {e}",
                extra={'error_type': type(e).__name__},
            )
            return False

        logger.info(f"Recomputed daily aggregates for user {user_id} ({start} to {end})")
        return True
