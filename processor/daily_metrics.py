"""Daily schedule-load metrics derived from stored events."""
from collections import defaultdict
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional, Tuple

from processor.models import DailyAggregate, EventClassification

WORKDAY_HOURS = 8
WORKDAY_START = time(9, 0)
WORKDAY_END = time(17, 0)
WORKDAY_MINUTES = WORKDAY_HOURS * 60


def _round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, never negative."""
    return max(0, _round_half_up((end - start).total_seconds() / 60))


def busyness_score(busy_minutes: int) -> int:
    """
    Score schedule load from 0 to 100 against an 8-hour workday.

    Busy hours are rounded to one decimal before scoring.
    """
    busy_hours = _round_half_up(busy_minutes / 60 * 10) / 10
    return min(100, _round_half_up(busy_hours / WORKDAY_HOURS * 100))


def _at(day: date, moment: time, tz: Optional[tzinfo]) -> datetime:
    if tz is None:
        return datetime.combine(day, moment).astimezone()
    return datetime.combine(day, moment, tzinfo=tz)


def _merge(intervals: List[Tuple[datetime, datetime]]) -> List[Tuple[datetime, datetime]]:
    merged: List[Tuple[datetime, datetime]] = []
    for start, end in sorted(intervals):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def compute_day(user_id: str, day: date, events: Iterable, tz: Optional[tzinfo] = None) -> DailyAggregate:
    """
    Compute the aggregate row for one day.

    Breaks count as free time: they add neither to busyness nor to
    after-hours minutes, and do not shorten free blocks.

    Args:
        user_id: Owner of the events
        day: Calendar day being aggregated
        events: Events starting on that day (start_time, end_time,
            classification)
        tz: Timezone the workday is measured in (default: local)

    Returns:
        DailyAggregate for the day
    """
    workday_start = _at(day, WORKDAY_START, tz)
    workday_end = _at(day, WORKDAY_END, tz)

    busy_minutes = 0
    meeting_count = 0
    after_hours = 0
    covered: List[Tuple[datetime, datetime]] = []

    for event in events:
        classification = EventClassification(event.classification)
        if classification == EventClassification.MEETING:
            meeting_count += 1
        if classification == EventClassification.BREAK:
            continue

        duration = minutes_between(event.start_time, event.end_time)
        busy_minutes += duration

        inside_start = max(event.start_time, workday_start)
        inside_end = min(event.end_time, workday_end)
        inside = minutes_between(inside_start, inside_end) if inside_start < inside_end else 0
        after_hours += duration - inside
        if inside:
            covered.append((inside_start, inside_end))

    largest_free = 0
    cursor = workday_start
    for start, end in _merge(covered):
        largest_free = max(largest_free, minutes_between(cursor, start))
        cursor = max(cursor, end)
    largest_free = max(largest_free, minutes_between(cursor, workday_end))

    return DailyAggregate(
        user_id=user_id,
        day=day,
        busyness_score=busyness_score(busy_minutes),
        meeting_count=meeting_count,
        after_hours_min=after_hours,
        largest_free_min=largest_free,
    )


def compute_daily_aggregates(
    user_id: str,
    events: Iterable,
    start_date: date,
    end_date: date,
    tz: Optional[tzinfo] = None,
) -> List[DailyAggregate]:
    """
    Compute one aggregate per day from start_date through end_date.

    Events are bucketed by the date of their start in `tz` (default: local).
    Days without events still get a row so stale values are overwritten.
    """
    by_day: Dict[date, list] = defaultdict(list)
    for event in events:
        by_day[event.start_time.astimezone(tz).date()].append(event)

    aggregates = []
    day = start_date
    while day <= end_date:
        aggregates.append(compute_day(user_id, day, by_day.get(day, []), tz))
        day += timedelta(days=1)
    return aggregates
