from datetime import UTC, datetime

import pytest

from app.services.calendar.google_client import GoogleCalendarError


class FakeCalendarTransport:
    """In-memory stand-in for GoogleCalendarService keyed by access token."""

    def __init__(self):
        # token -> calendarList items
        self.calendars: dict[str, list[dict]] = {}
        # (token, calendar_id) -> event records
        self.events: dict[tuple[str, str], list[dict]] = {}
        # (token, calendar_id, event_id) -> master record
        self.masters: dict[tuple[str, str, str], dict] = {}
        self.failing_listings: set[str] = set()
        self.failing_sources: dict[tuple[str, str], Exception] = {}
        self.list_events_calls: list[tuple[str, str]] = []
        self.get_event_calls: list[tuple[str, str, str]] = []

    async def list_calendars(self, access_token: str) -> list[dict]:
        if access_token in self.failing_listings:
            raise GoogleCalendarError("Calendar access denied.", error_code="403", status_code=403)
        return list(self.calendars.get(access_token, []))

    async def list_events(self, access_token, calendar_id, time_min=None, time_max=None):
        self.list_events_calls.append((access_token, calendar_id))
        error = self.failing_sources.get((access_token, calendar_id))
        if error is not None:
            raise error
        return list(self.events.get((access_token, calendar_id), []))

    async def get_event(self, access_token, event_id, calendar_id="primary"):
        self.get_event_calls.append((access_token, calendar_id, event_id))
        key = (access_token, calendar_id, event_id)
        if key not in self.masters:
            raise GoogleCalendarError(
                "Calendar or event not found.", error_code="404", status_code=404
            )
        return self.masters[key]


@pytest.fixture
def fake_transport():
    return FakeCalendarTransport()


@pytest.fixture
def window():
    return (
        datetime(2024, 3, 4, tzinfo=UTC),
        datetime(2024, 3, 11, tzinfo=UTC),
    )
