# app/models/api/calendar_request.py
"""
Calendar API request models.
Used by routes for input validation.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from app.models.domain.calendar_domain import CalendarAccount, StickyItem, ViewportWindow
from app.models.domain.task_domain import TASK_STATUSES, Task


def _parse_due_date(value: str) -> date | datetime:
    if len(value) == 10:
        return date.fromisoformat(value)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class CalendarAccountRequest(BaseModel):
    """A connected account with its access token and source selection."""

    email: str = Field(..., min_length=1, description="Account identity")
    access_token: str = Field(..., min_length=1, description="Valid OAuth access token")
    active: bool = Field(default=True, description="Whether the account is synced")
    enabled_calendar_ids: list[str] | None = Field(
        default=None,
        description="Calendar ids or account:calendar keys; default uses provider selection",
    )

    def to_domain(self) -> CalendarAccount:
        return CalendarAccount(
            email=self.email,
            access_token=self.access_token,
            active=self.active,
            enabled_calendar_ids=(
                set(self.enabled_calendar_ids) if self.enabled_calendar_ids is not None else None
            ),
        )


class TaskRequest(BaseModel):
    """A task from the task board whose due date may become a marker."""

    id: str = Field(..., min_length=1, description="Task ID")
    title: str = Field(default="", max_length=500, description="Task title")
    status: str = Field(default="TO_DO", description="Task status")
    due_date: str | None = Field(
        default=None, description="YYYY-MM-DD for a due day, ISO datetime for a due time"
    )
    priority: str = Field(default="NORMAL", description="Task priority")

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str) -> str:
        status = value.upper()
        if status not in TASK_STATUSES:
            raise ValueError(f"Unknown task status: {value}")
        return status

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            _parse_due_date(value)
        except ValueError as e:
            raise ValueError(f"Invalid due date: {value}") from e
        return value

    def to_domain(self) -> Task:
        return Task(
            id=self.id,
            title=self.title,
            status=self.status,
            due_date=_parse_due_date(self.due_date) if self.due_date else None,
            priority=self.priority,
        )


class SyncRequest(BaseModel):
    """Request for aggregating events over an explicit window."""

    accounts: list[CalendarAccountRequest] = Field(..., description="Connected accounts")
    time_min: datetime = Field(..., description="Window start (inclusive)")
    time_max: datetime = Field(..., description="Window end (exclusive)")
    tasks: list[TaskRequest] = Field(default_factory=list, description="Tasks for due markers")
    timezone: str | None = Field(default=None, description="IANA timezone for date-only values")
    session_key: str | None = Field(
        default=None, description="Supersession scope; defaults to the active account set"
    )


class CalendarViewRequest(BaseModel):
    """Request for a day or week layout."""

    accounts: list[CalendarAccountRequest] = Field(..., description="Connected accounts")
    start_date: date | None = Field(
        default=None, description="First visible day; defaults to the current week or today"
    )
    days: int = Field(default=7, ge=1, le=7, description="Number of day columns (1-7)")
    tasks: list[TaskRequest] = Field(default_factory=list, description="Tasks for due markers")
    timezone: str | None = Field(default=None, description="IANA timezone of the grid")
    pixels_per_hour: float | None = Field(
        default=None, gt=0, description="Grid scale; defaults to configured value"
    )
    session_key: str | None = Field(
        default=None, description="Supersession scope; defaults to the active account set"
    )


class ViewportRequest(BaseModel):
    """Visible part of the scrolling day column."""

    scroll_offset: float = Field(..., ge=0, description="Current scroll offset")
    container_height: float = Field(..., gt=0, description="Visible height")

    def to_domain(self) -> ViewportWindow:
        return ViewportWindow(
            scroll_offset=self.scroll_offset, container_height=self.container_height
        )


class StickyItemRequest(BaseModel):
    """A laid-out element considered for sticky positioning."""

    event_id: str = Field(..., description="Event ID")
    top: float = Field(..., ge=0, description="Natural top offset")
    height: float = Field(..., ge=0, description="Rendered height")
    z_index: int = Field(default=10, description="Layout stacking order")
    sticky: bool = Field(default=True, description="Whether the element is a sticky marker")

    def to_domain(self) -> StickyItem:
        return StickyItem(
            event_id=self.event_id,
            top=self.top,
            height=self.height,
            z_index=self.z_index,
            sticky=self.sticky,
        )


class StickyRequest(BaseModel):
    """Request for recomputing sticky marker offsets for one frame."""

    items: list[StickyItemRequest] = Field(..., description="Laid-out elements")
    viewport: ViewportRequest = Field(..., description="Current viewport")
    pixels_per_hour: float | None = Field(default=None, gt=0, description="Grid scale")
    sticky_margin: float | None = Field(default=None, ge=0, description="Edge margin")
