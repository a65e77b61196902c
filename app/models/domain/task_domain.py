"""
Task domain models.

Tasks belong to an external task board; the calendar only reads their
status and due date to derive markers.
"""

from dataclasses import dataclass
from datetime import date, datetime

TASK_STATUSES = (
    "TO_DO",
    "IN_PROGRESS",
    "PAUSED",
    "IN_REVIEW",
    "COMPLETED",
    "CANCELLED",
    "ARCHIVED",
)
TERMINAL_TASK_STATUSES = frozenset({"COMPLETED", "CANCELLED", "ARCHIVED"})


@dataclass(slots=True)
class Task:
    """A task as exposed by the task collaborator."""

    id: str
    title: str
    status: str = "TO_DO"
    due_date: date | datetime | None = None
    priority: str = "NORMAL"

    def is_terminal(self) -> bool:
        return self.status.upper() in TERMINAL_TASK_STATUSES

    def has_due_date(self) -> bool:
        return self.due_date is not None
