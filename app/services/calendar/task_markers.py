"""
Task due-date markers.

Open tasks with a due date inside the aggregation window become calendar
pseudo-events. Markers are recomputed on every aggregation cycle.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta, tzinfo

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.calendar_domain import EVENT_TYPE_TASK_DERIVED, TaskMarker
from app.models.domain.task_domain import Task

logger = get_logger(__name__)

TASK_CALENDAR_ID = "tasks"
TASK_ACCOUNT = "tasks"


def build_task_marker(
    task: Task, tz: tzinfo = UTC, duration_minutes: int | None = None
) -> TaskMarker:
    """Materialise one marker; the task must have a due date."""
    if task.due_date is None:
        raise ValueError(f"Task {task.id} has no due date")

    duration = timedelta(minutes=duration_minutes or settings.TASK_MARKER_MINUTES)
    due = task.due_date
    if isinstance(due, datetime):
        start: date | datetime = due if due.tzinfo else due.replace(tzinfo=tz)
        end: date | datetime = start + duration
        all_day = False
    else:
        start = due
        end = due + timedelta(days=1)
        all_day = True

    return TaskMarker(
        id=f"task-{task.id}",
        calendar_id=TASK_CALENDAR_ID,
        account_email=TASK_ACCOUNT,
        calendar_name="Tasks",
        title=task.title or "(No title)",
        start=start,
        end=end,
        all_day=all_day,
        event_type=EVENT_TYPE_TASK_DERIVED,
        color=settings.marker_color(task.status),
        status=task.status.lower(),
        task_id=task.id,
        task_status=task.status,
    )


def derive_task_markers(
    tasks: Iterable[Task],
    time_min: datetime,
    time_max: datetime,
    tz: tzinfo = UTC,
) -> list[TaskMarker]:
    """
    Build markers for open tasks due inside ``[time_min, time_max)``.

    Terminal tasks (completed, cancelled, archived) and tasks without a due
    date are skipped.
    """
    markers: list[TaskMarker] = []
    skipped_terminal = 0
    for task in tasks:
        if task.is_terminal():
            skipped_terminal += 1
            continue
        if not task.has_due_date():
            continue
        marker = build_task_marker(task, tz)
        if not (marker.start_instant(tz) < time_max and marker.end_instant(tz) > time_min):
            continue
        markers.append(marker)

    markers.sort(key=lambda m: (m.start_instant(tz), m.title, m.task_id))
    logger.debug(
        "Task markers derived",
        marker_count=len(markers),
        skipped_terminal=skipped_terminal,
    )
    return markers
