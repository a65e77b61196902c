"""
Day interval layout for the day/week grid.

Timed events are placed vertically by their wall-clock minutes in the view
timezone, then packed horizontally:

1. events are swept in start order and grouped into clusters, the maximal
   sets connected by a chain of overlapping intervals;
2. each cluster is coloured greedily, every event taking the lowest column
   whose previous event has already ended.

A cluster is only as wide as its own peak concurrency. Overlap decisions use
the true (day-clamped) interval; the minimum rendered height is applied to
``height`` only, so very short events never pull unrelated events into their
cluster.

All functions here are pure and synchronous.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from app.config import settings
from app.models.domain.calendar_domain import DayLayout, Event, LayoutPosition

MINUTES_PER_DAY = 24 * 60
# 23:59:59 expressed in minutes
LAST_MINUTE_OF_DAY = MINUTES_PER_DAY - 1 / 60

GRID_Z_INDEX = 10
OVERLAY_Z_INDEX = 40

Span = tuple[float, float]


def _as_date(value: date | datetime, tz: tzinfo) -> date:
    if isinstance(value, datetime):
        return value.astimezone(tz).date() if value.tzinfo else value.date()
    return value


def _day_start(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _covers_all_day(event: Event, day: date, tz: tzinfo) -> bool:
    first = _as_date(event.start, tz)
    last_exclusive = _as_date(event.end, tz)
    if last_exclusive <= first:
        last_exclusive = first + timedelta(days=1)
    return first <= day < last_exclusive


def _intersects_day(event: Event, day: date, tz: tzinfo) -> bool:
    start = event.start_instant(tz)
    end = event.end_instant(tz)
    day_start = _day_start(day, tz)
    next_day_start = _day_start(day + timedelta(days=1), tz)
    if start >= next_day_start:
        return False
    if start == end:
        return start >= day_start
    return end > day_start


def events_for_day(events: Iterable[Event], day: date, tz: tzinfo = UTC) -> list[Event]:
    """Events visible on ``day``: all-day ranges covering it, timed events intersecting it."""
    return [
        event
        for event in events
        if (_covers_all_day(event, day, tz) if event.all_day else _intersects_day(event, day, tz))
    ]


def minute_of_day(instant: datetime, day: date, tz: tzinfo = UTC) -> float:
    """Wall-clock minutes from ``day``'s midnight, clamped to [00:00, 23:59:59]."""
    local = instant.astimezone(tz)
    if local.date() < day:
        return 0.0
    if local.date() > day:
        return LAST_MINUTE_OF_DAY
    minutes = local.hour * 60 + local.minute + local.second / 60
    return min(minutes, LAST_MINUTE_OF_DAY)


def clamp_to_day(event: Event, day: date, tz: tzinfo = UTC) -> Span:
    """
    ``(start_minute, end_minute)`` of ``event`` within ``day``.

    The start is placed by wall clock; the end adds the real elapsed time, so
    a repeated hour on a DST fall-back day still yields a true duration.
    """
    # Compare in UTC; same-zone aware datetimes compare by wall clock
    day_start = _day_start(day, tz).astimezone(UTC)
    next_day_start = _day_start(day + timedelta(days=1), tz).astimezone(UTC)
    start = min(max(event.start_instant(tz).astimezone(UTC), day_start), next_day_start)
    end = min(max(event.end_instant(tz).astimezone(UTC), start), next_day_start)

    start_minute = minute_of_day(start, day, tz)
    elapsed = (end - start).total_seconds() / 60
    return start_minute, min(start_minute + elapsed, LAST_MINUTE_OF_DAY)


def cluster_spans(spans: Sequence[Span]) -> list[int]:
    """
    Cluster index for each span; ``spans`` must be sorted by start.

    A span joins the open cluster when it starts strictly before the
    cluster's furthest end.
    """
    cluster_of: list[int] = []
    cluster_ends: list[float] = []
    for start, end in spans:
        # Sorted input: every cluster before the last one ended at or before ``start``
        if cluster_ends and start < cluster_ends[-1]:
            if end > cluster_ends[-1]:
                cluster_ends[-1] = end
        else:
            cluster_ends.append(end)
        cluster_of.append(len(cluster_ends) - 1)
    return cluster_of


def assign_columns(spans: Sequence[Span], cluster_of: Sequence[int]) -> tuple[list[int], list[int]]:
    """
    Greedy column assignment per cluster.

    Returns ``(columns, total_columns)`` aligned with ``spans``. Clusters
    must be contiguous runs, which ``cluster_spans`` guarantees.
    """
    count = len(spans)
    columns = [0] * count
    totals = [0] * count

    run_start = 0
    while run_start < count:
        run_end = run_start
        while run_end < count and cluster_of[run_end] == cluster_of[run_start]:
            run_end += 1

        column_ends: list[float] = []
        for index in range(run_start, run_end):
            start, end = spans[index]
            for column, column_end in enumerate(column_ends):
                if column_end <= start:
                    column_ends[column] = end
                    columns[index] = column
                    break
            else:
                columns[index] = len(column_ends)
                column_ends.append(end)

        for index in range(run_start, run_end):
            totals[index] = len(column_ends)
        run_start = run_end

    return columns, totals


def compute_day_layout(
    day: date,
    events: Iterable[Event],
    tz: tzinfo = UTC,
    pixels_per_hour: float | None = None,
    min_event_minutes: float | None = None,
) -> DayLayout:
    """
    Lay out one day column.

    All-day events go to the all-day row and out-of-office events to a full
    width overlay layer; the remaining timed events are clustered and packed
    into columns.
    """
    pph = pixels_per_hour if pixels_per_hour is not None else settings.PIXELS_PER_HOUR
    min_minutes = (
        min_event_minutes if min_event_minutes is not None else settings.MIN_EVENT_MINUTES
    )
    scale = pph / 60

    layout = DayLayout(day=day)
    timed: list[Event] = []
    timed_spans: list[Span] = []

    for event in events_for_day(events, day, tz):
        if event.all_day:
            layout.all_day.append(event)
            continue

        start, end = clamp_to_day(event, day, tz)
        if event.is_out_of_office:
            layout.overlays.append(
                LayoutPosition(
                    event=event,
                    top=start * scale,
                    height=max(end - start, min_minutes) * scale,
                    layer="overlay",
                    z_index=OVERLAY_Z_INDEX,
                    start_minute=start,
                    end_minute=end,
                )
            )
            continue

        timed.append(event)
        timed_spans.append((start, end))

    order = sorted(range(len(timed)), key=lambda i: (timed_spans[i][0], timed[i].layout_key))
    spans = [timed_spans[i] for i in order]
    cluster_of = cluster_spans(spans)
    columns, totals = assign_columns(spans, cluster_of)

    for position_index, event_index in enumerate(order):
        start, end = spans[position_index]
        column = columns[position_index]
        layout.positions.append(
            LayoutPosition(
                event=timed[event_index],
                top=start * scale,
                height=max(end - start, min_minutes) * scale,
                column=column,
                total_columns=totals[position_index],
                cluster=cluster_of[position_index],
                z_index=GRID_Z_INDEX + column,
                start_minute=start,
                end_minute=end,
            )
        )

    return layout


def compute_week_layout(
    week_start: date,
    events: Sequence[Event],
    tz: tzinfo = UTC,
    days: int = 7,
    pixels_per_hour: float | None = None,
    min_event_minutes: float | None = None,
) -> list[DayLayout]:
    """Lay out ``days`` consecutive day columns starting at ``week_start``."""
    return [
        compute_day_layout(
            week_start + timedelta(days=offset),
            events,
            tz,
            pixels_per_hour=pixels_per_hour,
            min_event_minutes=min_event_minutes,
        )
        for offset in range(days)
    ]
