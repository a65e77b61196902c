"""
Calendar view service for high-level calendar orchestration.
Runs an aggregation cycle for the visible date range and turns the result
into per-day layouts for the presentation layer.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.calendar_domain import (
    AggregationResult,
    CalendarAccount,
    DayLayout,
)
from app.models.domain.task_domain import Task
from app.services.calendar.aggregator import CalendarAggregator
from app.services.calendar.layout_engine import compute_week_layout

logger = get_logger(__name__)

MAX_VIEW_DAYS = 7


class CalendarViewError(Exception):
    """Custom exception for invalid view requests."""

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


@dataclass(slots=True)
class CalendarView:
    """Aggregated events plus the layout of every visible day."""

    aggregation: AggregationResult
    timezone: str
    days: list[DayLayout] = field(default_factory=list)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """
    Resolve an IANA timezone name, defaulting to the configured zone.

    Raises:
        CalendarViewError: If the name is unknown
    """
    try:
        return ZoneInfo(name or settings.DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise CalendarViewError(f"Unknown timezone: {name}", error_code="invalid_timezone") from e


def week_start_for(day: date, first_weekday: int = 6) -> date:
    """First day of the week containing ``day`` (Sunday-first by default)."""
    offset = (day.weekday() - first_weekday) % 7
    return day - timedelta(days=offset)


def window_for(start_date: date, days: int, tz: tzinfo) -> tuple[datetime, datetime]:
    time_min = datetime.combine(start_date, time.min, tzinfo=tz)
    time_max = datetime.combine(start_date + timedelta(days=days), time.min, tzinfo=tz)
    return time_min, time_max


class CalendarViewService:
    """
    High-level service for calendar views.

    Owns one aggregator; overlapping requests for the same session share a
    generation counter so stale results can be recognised.
    """

    def __init__(self, aggregator: CalendarAggregator | None = None):
        self.aggregator = aggregator or CalendarAggregator()

    async def sync(
        self,
        accounts: Sequence[CalendarAccount],
        time_min: datetime,
        time_max: datetime,
        tasks: Iterable[Task] | None = None,
        timezone: str | None = None,
        session_key: str | None = None,
    ) -> AggregationResult:
        """
        Aggregate events for an explicit time window.

        Raises:
            CalendarViewError: If the window or timezone is invalid
            AggregationError: If aggregation fails entirely
        """
        tz = resolve_timezone(timezone)
        if time_min.tzinfo is None:
            time_min = time_min.replace(tzinfo=tz)
        if time_max.tzinfo is None:
            time_max = time_max.replace(tzinfo=tz)
        if time_max <= time_min:
            raise CalendarViewError("time_max must be after time_min", error_code="invalid_window")

        return await self.aggregator.aggregate(
            accounts, time_min, time_max, tasks=tasks, tz=tz, session_key=session_key
        )

    async def build_view(
        self,
        accounts: Sequence[CalendarAccount],
        start_date: date | None = None,
        days: int = MAX_VIEW_DAYS,
        tasks: Iterable[Task] | None = None,
        timezone: str | None = None,
        pixels_per_hour: float | None = None,
        session_key: str | None = None,
    ) -> CalendarView:
        """
        Aggregate and lay out ``days`` day columns starting at ``start_date``.

        Without ``start_date`` a full week view starts on the current week's
        Sunday and shorter views start today, both in the view timezone.

        Raises:
            CalendarViewError: If the request is invalid
            AggregationError: If aggregation fails entirely
        """
        if not 1 <= days <= MAX_VIEW_DAYS:
            raise CalendarViewError(
                f"days must be between 1 and {MAX_VIEW_DAYS}", error_code="invalid_days"
            )

        tz = resolve_timezone(timezone)
        if start_date is None:
            today = datetime.now(tz).date()
            start_date = week_start_for(today) if days == MAX_VIEW_DAYS else today
        time_min, time_max = window_for(start_date, days, tz)
        result = await self.aggregator.aggregate(
            accounts, time_min, time_max, tasks=tasks, tz=tz, session_key=session_key
        )

        day_layouts = compute_week_layout(
            start_date,
            result.all_entries(),
            tz,
            days=days,
            pixels_per_hour=pixels_per_hour,
        )

        logger.info(
            "Calendar view built",
            start_date=start_date.isoformat(),
            days=days,
            event_count=len(result.events),
            stale=result.stale,
        )
        return CalendarView(aggregation=result, timezone=str(tz), days=day_layouts)


# Singleton instance for application use
calendar_view_service = CalendarViewService()
