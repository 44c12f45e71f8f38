"""DynamoDB-backed recomputation of daily analytics."""
import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import List, Optional

import boto3
from botocore.exceptions import ClientError

from processor.daily_metrics import compute_daily_aggregates
from processor.models import DailyAggregate

logger = logging.getLogger(__name__)


class DailyAnalyticsManager:
    """Recomputes and stores one DailyAggregate per user and day."""

    def __init__(
        self,
        table_name: str,
        event_store,
        region_name: Optional[str] = None,
        tz: Optional[tzinfo] = None,
    ):
        """
        Args:
            table_name: Name of the daily analytics table
            event_store: Store exposing list_by_user(user_id, start, end)
            region_name: Optional AWS region
            tz: Timezone days are measured in (default: local)
        """
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        self.event_store = event_store
        self.tz = tz

    def _day_start(self, day: date) -> datetime:
        if self.tz is None:
            return datetime.combine(day, time.min).astimezone()
        return datetime.combine(day, time.min, tzinfo=self.tz)

    def recompute(self, user_id: str, start_date: date, end_date: date) -> List[DailyAggregate]:
        """
        Rebuild the aggregates for every day in [start_date, end_date].

        Rows are overwritten, never patched, so repeating a call with the
        same window leaves the same stored aggregates.

        Args:
            user_id: Owner of the events
            start_date: First day to recompute
            end_date: Last day to recompute

        Returns:
            The aggregates that were written
        """
        events = self.event_store.list_by_user(
            user_id,
            self._day_start(start_date),
            self._day_start(end_date + timedelta(days=1)),
        )
        aggregates = compute_daily_aggregates(user_id, events, start_date, end_date, self.tz)

        try:
            with self.table.batch_writer() as writer:
                for aggregate in aggregates:
                    writer.put_item(Item=self._aggregate_to_item(aggregate))
        except ClientError as e:
            logger.error(f"Error writing daily analytics for user {user_id}: {e}")
            raise

        logger.info(
            f"Wrote {len(aggregates)} daily aggregates for user {user_id} "
            f"from {len(events)} events"
        )
        return aggregates

    def _aggregate_to_item(self, aggregate: DailyAggregate) -> dict:
        return {
            'user_id': aggregate.user_id,
            'day': aggregate.day.isoformat(),
            'busyness_score': aggregate.busyness_score,
            'meeting_count': aggregate.meeting_count,
            'after_hours_min': aggregate.after_hours_min,
            'largest_free_min': aggregate.largest_free_min,
        }

