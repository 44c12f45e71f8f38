"""Parser for the VEVENT subset of the iCalendar format."""
import logging
import re
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from processor.models import RawFeedEvent

logger = logging.getLogger(__name__)

_ESCAPE_PATTERN = re.compile(r'\\([\\,;nN])')
_ESCAPES = {'\\': '\\', ',': ',', ';': ';', 'n': '\n', 'N': '\n'}


class IcsParser:
    """Turns raw ICS text into RawFeedEvent objects.

    Malformed fragments are skipped rather than raised, so a truncated or
    partially broken feed still yields every event that could be read.
    """

    BEGIN_EVENT = 'BEGIN:VEVENT'
    END_EVENT = 'END:VEVENT'

    def parse(self, raw_text: str) -> List[RawFeedEvent]:
        """
        Parse all complete VEVENT blocks from ICS text.

        Args:
            raw_text: Calendar document text

        Returns:
            List of RawFeedEvent objects in feed order
        """
        events = []
        seen_ids: Set[str] = set()
        candidate: Optional[Dict] = None
        nested = 0

        for line in self.unfold_lines(raw_text or ''):
            marker = line.strip()

            if marker == self.BEGIN_EVENT:
                candidate = {'attendee_count': 0}
                nested = 0
                continue

            if marker == self.END_EVENT:
                if candidate is not None:
                    event = self._build_event(candidate, seen_ids)
                    if event:
                        events.append(event)
                candidate = None
                continue

            if candidate is None:
                continue

            # Sub-components such as VALARM carry their own DESCRIPTION
            if marker.startswith('BEGIN:'):
                nested += 1
            elif marker.startswith('END:'):
                nested = max(0, nested - 1)
            elif not nested:
                self._apply_property(candidate, line)

        if candidate is not None:
            logger.debug("Dropping unterminated VEVENT at end of feed")

        logger.info(f"Parsed {len(events)} events from feed")
        return events

    def unfold_lines(self, raw_text: str) -> List[str]:
        """
        Split text into logical lines, joining folded continuation lines.

        Args:
            raw_text: Calendar document text

        Returns:
            List of logical lines
        """
        text = raw_text.replace('\r\n', '\n').replace('\r', '\n')
        lines: List[str] = []

        for physical in text.split('\n'):
            if physical[:1] in (' ', '\t') and lines:
                lines[-1] += physical[1:]
            else:
                lines.append(physical)

        return lines

    def _apply_property(self, candidate: Dict, line: str) -> None:
        name, sep, value = line.partition(':')
        if not sep:
            return

        # Parameters such as TZID or VALUE=DATE follow the name after ';'
        name = name.split(';', 1)[0]

        if name == 'UID':
            candidate['id'] = value.strip()
        elif name == 'SUMMARY':
            candidate['title'] = self.unescape_text(value)
        elif name == 'DESCRIPTION':
            candidate['description'] = self.unescape_text(value)
        elif name == 'LOCATION':
            candidate['location'] = self.unescape_text(value)
        elif name == 'DTSTART':
            candidate['start_time'] = self.parse_date(value)
        elif name == 'DTEND':
            candidate['end_time'] = self.parse_date(value)
        elif name == 'ATTENDEE':
            candidate['attendee_count'] += 1

    def _build_event(self, candidate: Dict, seen_ids: Set[str]) -> Optional[RawFeedEvent]:
        title = candidate.get('title')
        start_time = candidate.get('start_time')
        end_time = candidate.get('end_time')

        if not title or start_time is None or end_time is None:
            logger.debug(
                f"Skipping VEVENT without title, start or end: {candidate.get('id')}"
            )
            return None

        if end_time < start_time:
            logger.debug(f"Skipping VEVENT ending before it starts: {candidate.get('id')}")
            return None

        event_id = candidate.get('id')
        if event_id and event_id in seen_ids:
            # Recurrence overrides share the UID of their series
            event_id = f"{event_id}@{start_time.strftime('%Y%m%dT%H%M%S')}"
        while not event_id or event_id in seen_ids:
            event_id = self.generate_event_id()
        seen_ids.add(event_id)

        return RawFeedEvent(
            id=event_id,
            title=title,
            start_time=start_time,
            end_time=end_time,
            description=candidate.get('description'),
            location=candidate.get('location'),
            attendee_count=candidate['attendee_count'],
        )

    @staticmethod
    def unescape_text(text: str) -> str:
        """
        Decode iCalendar text escapes.

        Args:
            text: Escaped property value

        Returns:
            Unescaped text
        """
        return _ESCAPE_PATTERN.sub(lambda match: _ESCAPES[match.group(1)], text)

    @staticmethod
    def parse_date(value: str) -> Optional[datetime]:
        """
        Decode an ICS date or date-time value.

        YYYYMMDDTHHMMSS[Z] is read as UTC calendar fields whatever the
        suffix or TZID; YYYYMMDD is local midnight on that date. Extended
        forms with dashes and colons (2024-01-31T14:30:00Z) are accepted.

        Args:
            value: Property value

        Returns:
            Timezone-aware datetime or None if the value cannot be decoded
        """
        value = value.strip().replace('-', '').replace(':', '')
        try:
            if 'T' in value:
                return datetime(
                    int(value[0:4]), int(value[4:6]), int(value[6:8]),
                    int(value[9:11]), int(value[11:13]), int(value[13:15]),
                    tzinfo=timezone.utc,
                )
            if len(value) < 8:
                return None
            return datetime(int(value[0:4]), int(value[4:6]), int(value[6:8])).astimezone()
        except ValueError:
            logger.debug(f"Invalid ICS date value: {value!r}")
            return None

    @staticmethod
    def generate_event_id() -> str:
        """Generate an identifier for an event without UID."""
        return f"generated-{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"
