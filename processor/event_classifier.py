"""Keyword-based event classification."""
from typing import Optional, Sequence, Tuple

from processor.models import EventClassification

# Checked in order; the first group with a matching keyword wins.
KEYWORD_GROUPS: Sequence[Tuple[EventClassification, Tuple[str, ...]]] = (
    (EventClassification.MEETING, ('meeting', 'call', 'conference', 'standup', 'sync', 'review')),
    (EventClassification.FOCUS, ('focus', 'deep work', 'coding', 'workshop', 'block')),
    (EventClassification.BREAK, ('break', 'lunch', 'coffee', 'recharge')),
    (EventClassification.TRAVEL, ('travel', 'flight', 'drive')),
    (EventClassification.PERSONAL, ('personal', 'doctor', 'appointment', 'dentist', 'workout', 'dinner')),
    (EventClassification.BUFFER, ('buffer',)),
)

DEFAULT_CLASSIFICATION = EventClassification.MEETING


def classify(title: str, description: Optional[str] = None) -> EventClassification:
    """
    Classify an event from its title and description.

    Args:
        title: Event title
        description: Optional event description

    Returns:
        EventClassification, MEETING when no keyword matches
    """
    text = f"{title or ''} {description or ''}".casefold()

    for classification, keywords in KEYWORD_GROUPS:
        if any(keyword in text for keyword in keywords):
            return classification

    return DEFAULT_CLASSIFICATION
