"""
Event normalization.

Maps provider event records (Google Calendar v3 shape) onto the canonical
Event model and tags them with their source's provenance. Malformed records
are dropped and reported as issues instead of raising.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.infrastructure.observability.logging import get_logger
from app.models.domain.calendar_domain import (
    EVENT_TYPE_DEFAULT,
    EVENT_TYPE_OUT_OF_OFFICE,
    GOOGLE_EVENT_COLORS,
    UNTITLED_EVENT,
    CalendarSource,
    Event,
)

logger = get_logger(__name__)


class MalformedEventError(ValueError):
    """Raised internally when a provider record cannot become an Event."""


@dataclass(slots=True)
class NormalizationIssue:
    event_id: str | None
    source_key: str
    reason: str


@dataclass(slots=True)
class NormalizationBatch:
    events: list[Event] = field(default_factory=list)
    issues: list[NormalizationIssue] = field(default_factory=list)


def _zone(name: str | None):
    if not name:
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return UTC


def _parse_boundary(value: Any, field_name: str) -> tuple[date | datetime, bool]:
    """Parse a start/end object; returns the value and whether it is date-only."""
    if not isinstance(value, dict) or not value:
        raise MalformedEventError(f"missing {field_name}")

    if value.get("dateTime"):
        raw = str(value["dateTime"])
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError as e:
            raise MalformedEventError(f"invalid {field_name} dateTime {raw!r}") from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=_zone(value.get("timeZone")))
        return parsed, False

    if value.get("date"):
        raw = str(value["date"])
        try:
            return date.fromisoformat(raw), True
        except ValueError as e:
            raise MalformedEventError(f"invalid {field_name} date {raw!r}") from e

    raise MalformedEventError(f"missing {field_name}")


def _event_type(raw: dict) -> str:
    if raw.get("eventType") == EVENT_TYPE_OUT_OF_OFFICE:
        return EVENT_TYPE_OUT_OF_OFFICE
    return EVENT_TYPE_DEFAULT


def _resolve_color(color_id: str | None) -> str | None:
    if not color_id:
        return None
    return GOOGLE_EVENT_COLORS.get(str(color_id), str(color_id))


def _attendee_emails(raw: dict) -> list[str]:
    return [
        attendee["email"]
        for attendee in raw.get("attendees") or []
        if isinstance(attendee, dict) and attendee.get("email")
    ]


def build_event(raw: dict, source: CalendarSource) -> Event:
    """
    Build an Event from a provider record.

    Raises:
        MalformedEventError: If start/end are missing, invalid or reversed
    """
    if not isinstance(raw, dict):
        raise MalformedEventError("record is not an object")

    start, start_is_date = _parse_boundary(raw.get("start"), "start")
    end, end_is_date = _parse_boundary(raw.get("end"), "end")

    if start_is_date != end_is_date:
        raise MalformedEventError("start and end mix date and dateTime values")
    if end < start:
        raise MalformedEventError("end precedes start")

    title = (raw.get("summary") or "").strip() or UNTITLED_EVENT

    return Event(
        id=str(raw.get("id") or ""),
        calendar_id=source.calendar_id,
        account_email=source.account_email,
        calendar_name=source.summary,
        title=title,
        description=raw.get("description") or "",
        location=raw.get("location") or "",
        start=start,
        end=end,
        all_day=start_is_date,
        recurrence=list(raw.get("recurrence") or []),
        recurring_event_id=raw.get("recurringEventId") or None,
        event_type=_event_type(raw),
        attendees=_attendee_emails(raw),
        color=_resolve_color(raw.get("colorId")),
        calendar_color=source.background_color,
        status=raw.get("status", "confirmed"),
        html_link=raw.get("htmlLink") or "",
    )


def normalize_event(raw: dict, source: CalendarSource) -> Event | None:
    """Normalize one record; malformed records are logged and dropped."""
    batch = normalize_events([raw], source)
    return batch.events[0] if batch.events else None


def normalize_master_recurrence(raw: dict) -> list[str]:
    """Recurrence rules of a master event record (empty when absent)."""
    if not isinstance(raw, dict):
        return []
    return [str(rule) for rule in raw.get("recurrence") or []]


def normalize_events(raws: Iterable[dict], source: CalendarSource) -> NormalizationBatch:
    """Normalize every record from one source, collecting issues for the dropped ones."""
    batch = NormalizationBatch()
    for raw in raws:
        try:
            batch.events.append(build_event(raw, source))
        except MalformedEventError as e:
            event_id = raw.get("id") if isinstance(raw, dict) else None
            logger.warning(
                "Dropping malformed calendar event",
                event_id=event_id,
                source_key=source.source_key,
                reason=str(e),
            )
            batch.issues.append(
                NormalizationIssue(event_id=event_id, source_key=source.source_key, reason=str(e))
            )
    return batch
