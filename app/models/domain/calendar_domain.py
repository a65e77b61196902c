# app/models/domain/calendar_domain.py
"""
Calendar Domain Models
Domain models for calendar aggregation and grid layout.
Used by services for internal processing and by routes for responses.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, tzinfo
from typing import Any, Literal

EventType = Literal["default", "outOfOffice", "taskDerived"]

EVENT_TYPE_DEFAULT = "default"
EVENT_TYPE_OUT_OF_OFFICE = "outOfOffice"
EVENT_TYPE_TASK_DERIVED = "taskDerived"

CALENDAR_PRIMARY = "primary"
UNTITLED_EVENT = "(No title)"

ACCESS_ROLES = ("owner", "writer", "reader", "freeBusyReader")

# Google Calendar event colour palette (colorId -> hex)
GOOGLE_EVENT_COLORS = {
    "1": "#7986cb",  # Lavender
    "2": "#33b679",  # Sage
    "3": "#8e24aa",  # Grape
    "4": "#e67c73",  # Flamingo
    "5": "#f6bf26",  # Banana
    "6": "#f4511e",  # Tangerine
    "7": "#039be5",  # Peacock
    "8": "#616161",  # Graphite
    "9": "#3f51b5",  # Blueberry
    "10": "#0b8043",  # Basil
    "11": "#d50000",  # Tomato
}


def make_source_key(account_email: str, calendar_id: str) -> str:
    """Composite identity of a calendar source across accounts."""
    return f"{account_email}:{calendar_id}"


def _isoformat(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(slots=True)
class CalendarSource:
    """Domain model for calendar metadata with business logic."""

    calendar_id: str
    account_email: str
    summary: str = ""
    description: str = ""
    timezone: str = "UTC"
    access_role: str = "reader"
    primary: bool = False
    selected: bool = True
    color_id: str | None = None
    background_color: str | None = None
    foreground_color: str | None = None

    @classmethod
    def from_api(cls, data: dict, account_email: str) -> "CalendarSource":
        access_role = data.get("accessRole", "reader")
        if access_role not in ACCESS_ROLES:
            access_role = "reader"
        return cls(
            calendar_id=data.get("id") or CALENDAR_PRIMARY,
            account_email=account_email,
            summary=data.get("summaryOverride") or data.get("summary", ""),
            description=data.get("description", ""),
            timezone=data.get("timeZone", "UTC"),
            access_role=access_role,
            primary=data.get("primary", False),
            selected=data.get("selected", True),
            color_id=data.get("colorId"),
            background_color=data.get("backgroundColor"),
            foreground_color=data.get("foregroundColor"),
        )

    @classmethod
    def primary_fallback(cls, account_email: str) -> "CalendarSource":
        """Pseudo-source used when the calendar listing for an account fails."""
        return cls(
            calendar_id=CALENDAR_PRIMARY,
            account_email=account_email,
            summary=account_email,
            access_role="owner",
            primary=True,
            selected=True,
        )

    @property
    def source_key(self) -> str:
        return make_source_key(self.account_email, self.calendar_id)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.calendar_id,
            "source_key": self.source_key,
            "account_email": self.account_email,
            "summary": self.summary,
            "description": self.description,
            "timezone": self.timezone,
            "access_role": self.access_role,
            "primary": self.primary,
            "selected": self.selected,
            "background_color": self.background_color,
            "foreground_color": self.foreground_color,
        }


@dataclass(slots=True)
class CalendarAccount:
    """A connected calendar account and its source selection."""

    email: str
    access_token: str
    active: bool = True
    # None means "use the provider's selected flags"
    enabled_calendar_ids: set[str] | None = None

    def is_source_enabled(self, source: CalendarSource) -> bool:
        if self.enabled_calendar_ids is None:
            return source.selected
        return (
            source.calendar_id in self.enabled_calendar_ids
            or source.source_key in self.enabled_calendar_ids
        )


@dataclass(slots=True)
class Event:
    """Canonical calendar event produced by the normalizer."""

    id: str
    calendar_id: str
    account_email: str
    title: str
    start: date | datetime
    end: date | datetime
    all_day: bool = False
    calendar_name: str = ""
    description: str = ""
    location: str = ""
    recurrence: list[str] = field(default_factory=list)
    recurring_event_id: str | None = None
    event_type: str = EVENT_TYPE_DEFAULT
    attendees: list[str] = field(default_factory=list)
    color: str | None = None
    calendar_color: str | None = None
    status: str = "confirmed"
    html_link: str = ""

    @property
    def source_key(self) -> str:
        return make_source_key(self.account_email, self.calendar_id)

    @property
    def layout_key(self) -> tuple[str, str, str]:
        """Stable secondary sort key for deterministic layout."""
        return (self.account_email, self.calendar_id, self.id)

    @property
    def is_out_of_office(self) -> bool:
        return self.event_type == EVENT_TYPE_OUT_OF_OFFICE

    @property
    def is_sticky(self) -> bool:
        """Timed task markers stay inside the visible scroll window."""
        return self.event_type == EVENT_TYPE_TASK_DERIVED and not self.all_day

    @property
    def display_color(self) -> str | None:
        return self.color or self.calendar_color

    def start_instant(self, tz: tzinfo = UTC) -> datetime:
        """Effective start; date-only values are midnight in ``tz``."""
        return _as_instant(self.start, tz)

    def end_instant(self, tz: tzinfo = UTC) -> datetime:
        return _as_instant(self.end, tz)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "calendar_id": self.calendar_id,
            "account_email": self.account_email,
            "calendar_name": self.calendar_name,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "start": _isoformat(self.start),
            "end": _isoformat(self.end),
            "all_day": self.all_day,
            "recurrence": list(self.recurrence),
            "recurring_event_id": self.recurring_event_id,
            "event_type": self.event_type,
            "attendees": list(self.attendees),
            "color": self.display_color,
            "status": self.status,
            "html_link": self.html_link,
        }


@dataclass(slots=True)
class TaskMarker(Event):
    """Pseudo-event materialised from a task's due date."""

    task_id: str = ""
    task_status: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = Event.to_dict(self)
        data["task_id"] = self.task_id
        data["task_status"] = self.task_status
        return data


def _as_instant(value: date | datetime, tz: tzinfo) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=tz)
        return value
    return datetime.combine(value, time.min, tzinfo=tz)


@dataclass(slots=True)
class LayoutPosition:
    """Geometry of one event inside one day column."""

    event: Event
    top: float
    height: float
    column: int = 0
    total_columns: int = 1
    cluster: int = 0
    layer: Literal["grid", "overlay"] = "grid"
    z_index: int = 10
    # True minutes from midnight after clamping to the day
    start_minute: float = 0.0
    end_minute: float = 0.0

    @property
    def width_percent(self) -> float:
        return 100.0 / self.total_columns

    @property
    def left_percent(self) -> float:
        return self.column * self.width_percent

    def overlaps(self, other: "LayoutPosition") -> bool:
        return self.start_minute < other.end_minute and other.start_minute < self.end_minute

    def as_sticky_item(self) -> "StickyItem":
        return StickyItem(
            event_id=self.event.id,
            top=self.top,
            height=self.height,
            z_index=self.z_index,
            sticky=self.event.is_sticky,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event.id,
            "source_key": self.event.source_key,
            "top": self.top,
            "height": self.height,
            "column": self.column,
            "total_columns": self.total_columns,
            "cluster": self.cluster,
            "layer": self.layer,
            "z_index": self.z_index,
            "left_percent": self.left_percent,
            "width_percent": self.width_percent,
            "sticky": self.event.is_sticky,
        }


@dataclass(slots=True)
class DayLayout:
    """All layout output for a single calendar day."""

    day: date
    positions: list[LayoutPosition] = field(default_factory=list)
    overlays: list[LayoutPosition] = field(default_factory=list)
    all_day: list[Event] = field(default_factory=list)

    def cluster_count(self) -> int:
        return len({position.cluster for position in self.positions})

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "positions": [position.to_dict() for position in self.positions],
            "overlays": [position.to_dict() for position in self.overlays],
            "all_day": [event.to_dict() for event in self.all_day],
        }


@dataclass(slots=True, frozen=True)
class ViewportWindow:
    """Visible part of a scrolling day column for one render frame."""

    scroll_offset: float
    container_height: float


@dataclass(slots=True, frozen=True)
class StickyItem:
    """A laid-out element as seen by the sticky positioner."""

    event_id: str
    top: float
    height: float
    z_index: int = 10
    sticky: bool = True


@dataclass(slots=True)
class StickyPlacement:
    """Display position of a laid-out element for one frame."""

    event_id: str
    display_top: float
    clamped: bool
    z_index: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "display_top": self.display_top,
            "clamped": self.clamped,
            "z_index": self.z_index,
        }


@dataclass(slots=True)
class SourceFetchFailure:
    """A calendar source whose events could not be fetched."""

    account_email: str
    calendar_id: str
    message: str
    status_code: int | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_email": self.account_email,
            "calendar_id": self.calendar_id,
            "message": self.message,
            "status_code": self.status_code,
            "error_code": self.error_code,
        }


@dataclass(slots=True)
class AggregationResult:
    """Unified output of one aggregation cycle."""

    generation: int
    events: list[Event] = field(default_factory=list)
    task_markers: list[TaskMarker] = field(default_factory=list)
    sources: list[CalendarSource] = field(default_factory=list)
    failures: list[SourceFetchFailure] = field(default_factory=list)
    stale: bool = False
    # Scope within which newer requests supersede older ones
    session_key: str = ""

    @property
    def failed_accounts(self) -> list[str]:
        """Distinct failing accounts, in first-failure order."""
        seen: dict[str, None] = {}
        for failure in self.failures:
            seen.setdefault(failure.account_email, None)
        return list(seen)

    @property
    def sync_error_message(self) -> str | None:
        if not self.failures:
            return None
        return f"failed to sync: {', '.join(self.failed_accounts)}"

    def all_entries(self) -> list[Event]:
        """Provider events followed by task markers."""
        return [*self.events, *self.task_markers]
