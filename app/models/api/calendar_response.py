# app/models/api/calendar_response.py
"""
Calendar API response models.
Used by routes for output formatting.
"""

from pydantic import BaseModel, Field


class CalendarSourceResponse(BaseModel):
    """Response model for calendar source metadata."""

    id: str = Field(..., description="Calendar ID")
    source_key: str = Field(..., description="account:calendar composite key")
    account_email: str = Field(..., description="Owning account")
    summary: str = Field(..., description="Calendar name")
    description: str = Field(default="", description="Calendar description")
    timezone: str = Field(..., description="Calendar timezone")
    access_role: str = Field(..., description="User's access role")
    primary: bool = Field(..., description="Is this the primary calendar")
    selected: bool = Field(..., description="Is this calendar selected")
    background_color: str | None = Field(None, description="Calendar background color")
    foreground_color: str | None = Field(None, description="Calendar text color")


class CalendarEventResponse(BaseModel):
    """Response model for canonical events and task markers."""

    id: str = Field(..., description="Event ID")
    calendar_id: str = Field(..., description="Source calendar ID")
    account_email: str = Field(..., description="Source account")
    calendar_name: str = Field(default="", description="Source calendar name")
    title: str = Field(..., description="Event title")
    description: str = Field(default="", description="Event description")
    location: str = Field(default="", description="Event location")
    start: str = Field(..., description="ISO date (all-day) or datetime")
    end: str = Field(..., description="ISO date (exclusive, all-day) or datetime")
    all_day: bool = Field(..., description="Is this an all-day event")
    recurrence: list[str] = Field(default_factory=list, description="Recurrence rules")
    recurring_event_id: str | None = Field(None, description="Series master ID")
    event_type: str = Field(..., description="default, outOfOffice or taskDerived")
    attendees: list[str] = Field(default_factory=list, description="Attendee e-mails")
    color: str | None = Field(None, description="Display color")
    status: str = Field(..., description="Event status")
    html_link: str = Field(default="", description="Provider link")
    task_id: str | None = Field(None, description="Originating task for markers")
    task_status: str | None = Field(None, description="Originating task status for markers")


class SourceFailureResponse(BaseModel):
    """A calendar source that failed to sync."""

    account_email: str = Field(..., description="Failing account")
    calendar_id: str = Field(..., description="Failing calendar")
    message: str = Field(..., description="Error message")
    status_code: int | None = Field(None, description="HTTP status from the provider")
    error_code: str | None = Field(None, description="Provider error code")


class SyncResponse(BaseModel):
    """Response for an aggregation cycle."""

    generation: int = Field(..., description="Aggregation request generation")
    events: list[CalendarEventResponse] = Field(..., description="Sorted provider events")
    task_markers: list[CalendarEventResponse] = Field(..., description="Task due markers")
    calendars: list[CalendarSourceResponse] = Field(..., description="Known calendar sources")
    failures: list[SourceFailureResponse] = Field(..., description="Failed source fetches")
    failed_accounts: list[str] = Field(..., description="Accounts with failed fetches")
    sync_error: str | None = Field(None, description="User-facing sync failure message")
    total_count: int = Field(..., description="Number of provider events")
    session_key: str = Field(..., description="Supersession scope of this request")
    stale: bool = Field(..., description="Superseded by a newer request for the same session")


class LayoutPositionResponse(BaseModel):
    """Geometry of one event in a day column."""

    event_id: str = Field(..., description="Event ID")
    source_key: str = Field(..., description="account:calendar composite key")
    top: float = Field(..., description="Offset from the day start")
    height: float = Field(..., description="Rendered height")
    column: int = Field(..., description="0-based column in the cluster")
    total_columns: int = Field(..., description="Column count of the cluster")
    cluster: int = Field(..., description="Cluster index within the day")
    layer: str = Field(..., description="grid or overlay")
    z_index: int = Field(..., description="Stacking order")
    left_percent: float = Field(..., description="Horizontal offset in percent")
    width_percent: float = Field(..., description="Width in percent")
    sticky: bool = Field(..., description="Whether the element is a sticky marker")


class DayLayoutResponse(BaseModel):
    """Layout of a single day column."""

    day: str = Field(..., description="ISO date")
    positions: list[LayoutPositionResponse] = Field(..., description="Grid layer")
    overlays: list[LayoutPositionResponse] = Field(..., description="Out-of-office layer")
    all_day: list[CalendarEventResponse] = Field(..., description="All-day row")


class CalendarViewResponse(BaseModel):
    """Response for a day or week view."""

    timezone: str = Field(..., description="Grid timezone")
    pixels_per_hour: float = Field(..., description="Grid scale used")
    days: list[DayLayoutResponse] = Field(..., description="Day columns")
    events: list[CalendarEventResponse] = Field(..., description="Event payloads by id")
    failed_accounts: list[str] = Field(..., description="Accounts with failed fetches")
    sync_error: str | None = Field(None, description="User-facing sync failure message")
    generation: int = Field(..., description="Aggregation request generation")
    session_key: str = Field(..., description="Supersession scope of this request")
    stale: bool = Field(..., description="Superseded by a newer request for the same session")


class StickyPlacementResponse(BaseModel):
    """Display position of one element for the current frame."""

    event_id: str = Field(..., description="Event ID")
    display_top: float = Field(..., description="Top offset to render at")
    clamped: bool = Field(..., description="Whether the marker was pulled into view")
    z_index: int = Field(..., description="Stacking order to render with")


class StickyResponse(BaseModel):
    """Response for sticky positioning."""

    placements: list[StickyPlacementResponse] = Field(..., description="One per input item")

