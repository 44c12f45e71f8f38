"""Event processor for windowing, cleaning and classifying parsed events."""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup

from processor.event_classifier import classify
from processor.models import ClassifiedEvent, RawFeedEvent

logger = logging.getLogger(__name__)


def _month_start(now: datetime, month_offset: int) -> datetime:
    """First instant of the month `month_offset` months from `now`."""
    year, month_index = divmod(now.year * 12 + now.month - 1 + month_offset, 12)
    return datetime(year, month_index + 1, 1, tzinfo=now.tzinfo)


def relevance_window(now: datetime) -> Tuple[datetime, datetime]:
    """
    Compute the window of events worth storing.

    The window opens on the first day of the previous month and runs
    through the last day of the month two months ahead.

    Args:
        now: Current timezone-aware instant

    Returns:
        Tuple of (inclusive start, exclusive end)
    """
    return _month_start(now, -1), _month_start(now, 3)


class EventProcessor:
    """Processor for restricting and classifying parsed feed events."""

    MAX_TITLE_LENGTH = 200
    MAX_DESCRIPTION_LENGTH = 2000

    def filter_window(self, events: List[RawFeedEvent], now: datetime) -> List[RawFeedEvent]:
        """
        Drop events starting outside the relevance window.

        Args:
            events: Parsed feed events
            now: Current timezone-aware instant

        Returns:
            Events whose start falls inside the window
        """
        window_start, window_end = relevance_window(now)
        windowed = [
            event for event in events
            if window_start <= event.start_time < window_end
        ]

        logger.info(
            f"Filtered to {len(windowed)} relevant events out of {len(events)} "
            f"({window_start.date()} to {window_end.date()})"
        )
        return windowed

    def process_events(self, raw_events: List[RawFeedEvent]) -> List[ClassifiedEvent]:
        """
        Clean and classify parsed events.

        Args:
            raw_events: Parsed feed events

        Returns:
            List of ClassifiedEvent objects
        """
        processed_events = []

        for event in raw_events:
            try:
                processed_events.append(self._process_single_event(event))
            except Exception as e:
                logger.warning(f"Failed to process event '{event.title}': {e}")
                continue

        return processed_events

    def _process_single_event(self, event: RawFeedEvent) -> ClassifiedEvent:
        # Classification sees the parsed text; cleanup applies to the stored copy
        classification = classify(event.title, event.description)

        return ClassifiedEvent(
            id=event.id,
            title=event.title[:self.MAX_TITLE_LENGTH],
            start_time=event.start_time,
            end_time=event.end_time,
            classification=classification,
            description=self.clean_description(event.description),
            location=event.location,
            attendee_count=event.attendee_count,
        )

    def clean_description(self, description: Optional[str]) -> Optional[str]:
        """
        Strip HTML markup that providers embed in descriptions.

        Args:
            description: Raw description text

        Returns:
            Plain text description, truncated, or None when empty
        """
        if not description:
            return None

        if '<' in description and '>' in description:
            soup = BeautifulSoup(description, 'html.parser')
            for br in soup.find_all('br'):
                br.replace_with('\n')
            description = soup.get_text()

        description = description.strip()
        if not description:
            return None

        return description[:self.MAX_DESCRIPTION_LENGTH]
