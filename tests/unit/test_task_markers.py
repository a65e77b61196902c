from datetime import UTC, date, datetime, timedelta

import pytest

from app.models.domain.calendar_domain import EVENT_TYPE_TASK_DERIVED
from app.models.domain.task_domain import Task
from app.services.calendar.task_markers import build_task_marker, derive_task_markers

TIME_MIN = datetime(2024, 3, 4, tzinfo=UTC)
TIME_MAX = datetime(2024, 3, 11, tzinfo=UTC)


def test_timed_due_date_becomes_sticky_marker():
    task = Task(
        id="42",
        title="Send report",
        status="IN_PROGRESS",
        due_date=datetime(2024, 3, 5, 16, 0, tzinfo=UTC),
    )

    marker = build_task_marker(task, duration_minutes=30)

    assert marker.id == "task-42"
    assert marker.task_id == "42"
    assert marker.event_type == EVENT_TYPE_TASK_DERIVED
    assert marker.all_day is False
    assert marker.is_sticky is True
    assert marker.end - marker.start == timedelta(minutes=30)
    assert marker.color == "#60a5fa"
    assert marker.to_dict()["task_status"] == "IN_PROGRESS"


def test_date_only_due_date_becomes_all_day_marker():
    marker = build_task_marker(Task(id="7", title="Pay rent", due_date=date(2024, 3, 6)))

    assert marker.all_day is True
    assert marker.is_sticky is False
    assert marker.start == date(2024, 3, 6)
    assert marker.end == date(2024, 3, 7)


def test_task_without_due_date_is_rejected():
    with pytest.raises(ValueError):
        build_task_marker(Task(id="1", title="Someday"))


@pytest.mark.parametrize("status", ["COMPLETED", "CANCELLED", "ARCHIVED"])
def test_terminal_tasks_are_skipped(status):
    task = Task(id="1", title="Old", status=status, due_date=date(2024, 3, 5))

    assert derive_task_markers([task], TIME_MIN, TIME_MAX) == []


def test_markers_outside_window_are_skipped():
    tasks = [
        Task(id="before", title="Before", due_date=date(2024, 3, 1)),
        Task(id="inside", title="Inside", due_date=date(2024, 3, 4)),
        Task(id="after", title="After", due_date=datetime(2024, 3, 11, 9, 0, tzinfo=UTC)),
        Task(id="undated", title="Undated"),
    ]

    markers = derive_task_markers(tasks, TIME_MIN, TIME_MAX)

    assert [marker.task_id for marker in markers] == ["inside"]


def test_markers_are_sorted_by_start_then_title():
    tasks = [
        Task(id="3", title="Later", due_date=datetime(2024, 3, 6, 9, 0, tzinfo=UTC)),
        Task(id="2", title="Beta", due_date=datetime(2024, 3, 5, 9, 0, tzinfo=UTC)),
        Task(id="1", title="Alpha", due_date=datetime(2024, 3, 5, 9, 0, tzinfo=UTC)),
    ]

    markers = derive_task_markers(tasks, TIME_MIN, TIME_MAX)

    assert [marker.task_id for marker in markers] == ["1", "2", "3"]
