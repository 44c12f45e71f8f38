"""Data models for calendar feed processing."""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


class EventClassification(str, Enum):
    """Semantic category assigned to a calendar event."""
    MEETING = 'meeting'
    FOCUS = 'focus'
    BREAK = 'break'
    PERSONAL = 'personal'
    TRAVEL = 'travel'
    BUFFER = 'buffer'


@dataclass(frozen=True)
class RawFeedEvent:
    """Event as parsed from an ICS feed."""
    id: str
    title: str
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    attendee_count: int = 0


@dataclass(frozen=True)
class ClassifiedEvent:
    """Parsed event with its classification."""
    id: str
    title: str
    start_time: datetime
    end_time: datetime
    classification: EventClassification
    description: Optional[str] = None
    location: Optional[str] = None
    attendee_count: int = 0


@dataclass
class StoredEvent:
    """Event as persisted for a feed integration."""
    feed_integration_id: str
    external_event_id: str
    user_id: str
    title: str
    start_time: datetime
    end_time: datetime
    classification: EventClassification
    description: Optional[str] = None
    location: Optional[str] = None
    attendee_count: int = 0
    created_at: Optional[datetime] = None


@dataclass
class FeedIntegration:
    """A user's configured ICS calendar source."""
    id: str
    user_id: str
    calendar_url: str
    provider: str = 'ics'
    is_active: bool = True
    last_sync: Optional[datetime] = None


@dataclass
class DailyAggregate:
    """Derived daily metrics for one user and day."""
    user_id: str
    day: date
    busyness_score: int
    meeting_count: int
    after_hours_min: int
    largest_free_min: int


@dataclass
class SyncOutcome:
    """Result of reconciling one feed."""
    changed: bool
    synced_count: int
    events: List[ClassifiedEvent] = field(default_factory=list)


@dataclass
class SyncSummary:
    """Result of syncing all feeds of a user."""
    succeeded: int = 0
    failed: int = 0
    synced_events: int = 0
    errors: List[str] = field(default_factory=list)
