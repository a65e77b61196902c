from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from app.models.domain.calendar_domain import (
    EVENT_TYPE_DEFAULT,
    EVENT_TYPE_OUT_OF_OFFICE,
    UNTITLED_EVENT,
    CalendarSource,
)
from app.services.calendar.normalizer import (
    MalformedEventError,
    build_event,
    normalize_event,
    normalize_events,
    normalize_master_recurrence,
)


@pytest.fixture
def source():
    return CalendarSource(
        calendar_id="work@example.com",
        account_email="alice@example.com",
        summary="Work",
        background_color="#123456",
    )


def test_timed_event_carries_provenance(source):
    event = build_event(
        {
            "id": "evt-1",
            "summary": "Standup",
            "start": {"dateTime": "2024-03-04T09:00:00Z"},
            "end": {"dateTime": "2024-03-04T09:15:00Z"},
            "htmlLink": "https://calendar.example/evt-1",
        },
        source,
    )

    assert event.id == "evt-1"
    assert event.calendar_id == "work@example.com"
    assert event.account_email == "alice@example.com"
    assert event.calendar_name == "Work"
    assert event.source_key == "alice@example.com:work@example.com"
    assert event.start == datetime(2024, 3, 4, 9, 0, tzinfo=UTC)
    assert event.all_day is False
    assert event.event_type == EVENT_TYPE_DEFAULT
    assert event.end - event.start == timedelta(minutes=15)
    assert event.display_color == "#123456"


def test_offset_is_preserved(source):
    event = build_event(
        {
            "id": "evt-2",
            "start": {"dateTime": "2024-03-04T09:00:00+02:00"},
            "end": {"dateTime": "2024-03-04T10:00:00+02:00"},
        },
        source,
    )

    assert event.start.utcoffset() == timedelta(hours=2)
    assert event.start_instant() == datetime(2024, 3, 4, 7, 0, tzinfo=timezone.utc)


def test_naive_datetime_uses_record_timezone(source):
    event = build_event(
        {
            "id": "evt-3",
            "start": {"dateTime": "2024-07-01T09:00:00", "timeZone": "Europe/Berlin"},
            "end": {"dateTime": "2024-07-01T10:00:00", "timeZone": "Europe/Berlin"},
        },
        source,
    )

    assert event.start.utcoffset() == timedelta(hours=2)


def test_date_only_event_is_all_day(source):
    event = build_event(
        {"id": "holiday", "start": {"date": "2024-03-04"}, "end": {"date": "2024-03-05"}},
        source,
    )

    assert event.all_day is True
    assert event.start == date(2024, 3, 4)
    assert event.end == date(2024, 3, 5)


def test_missing_title_gets_placeholder(source):
    event = build_event(
        {
            "id": "evt-4",
            "summary": "   ",
            "start": {"dateTime": "2024-03-04T09:00:00Z"},
            "end": {"dateTime": "2024-03-04T10:00:00Z"},
        },
        source,
    )

    assert event.title == UNTITLED_EVENT


def test_out_of_office_and_color_mapping(source):
    event = build_event(
        {
            "id": "ooo",
            "eventType": "outOfOffice",
            "colorId": "11",
            "start": {"dateTime": "2024-03-04T13:00:00Z"},
            "end": {"dateTime": "2024-03-04T17:00:00Z"},
            "attendees": [{"email": "bob@example.com"}, {"displayName": "No mail"}],
        },
        source,
    )

    assert event.event_type == EVENT_TYPE_OUT_OF_OFFICE
    assert event.is_out_of_office is True
    assert event.color == "#d50000"
    assert event.attendees == ["bob@example.com"]


def test_instance_keeps_recurring_reference(source):
    event = build_event(
        {
            "id": "series_20240304",
            "recurringEventId": "series",
            "start": {"dateTime": "2024-03-04T09:00:00Z"},
            "end": {"dateTime": "2024-03-04T09:30:00Z"},
        },
        source,
    )

    assert event.recurring_event_id == "series"
    assert event.recurrence == []


@pytest.mark.parametrize(
    "record",
    [
        {"id": "no-start", "end": {"dateTime": "2024-03-04T10:00:00Z"}},
        {"id": "no-end", "start": {"dateTime": "2024-03-04T10:00:00Z"}},
        {
            "id": "reversed",
            "start": {"dateTime": "2024-03-04T11:00:00Z"},
            "end": {"dateTime": "2024-03-04T10:00:00Z"},
        },
        {
            "id": "mixed",
            "start": {"date": "2024-03-04"},
            "end": {"dateTime": "2024-03-04T10:00:00Z"},
        },
        {"id": "garbage", "start": {"dateTime": "yesterday"}, "end": {"dateTime": "today"}},
    ],
)
def test_malformed_records_raise(source, record):
    with pytest.raises(MalformedEventError):
        build_event(record, source)


def test_normalize_event_drops_malformed(source):
    assert normalize_event({"id": "bad"}, source) is None


def test_normalize_events_reports_issues(source):
    batch = normalize_events(
        [
            {
                "id": "good",
                "start": {"dateTime": "2024-03-04T09:00:00Z"},
                "end": {"dateTime": "2024-03-04T10:00:00Z"},
            },
            {"id": "bad", "start": {"dateTime": "2024-03-04T09:00:00Z"}},
        ],
        source,
    )

    assert [event.id for event in batch.events] == ["good"]
    assert len(batch.issues) == 1
    assert batch.issues[0].event_id == "bad"
    assert batch.issues[0].source_key == source.source_key


def test_master_recurrence_rules():
    assert normalize_master_recurrence({"recurrence": ["RRULE:FREQ=DAILY"]}) == [
        "RRULE:FREQ=DAILY"
    ]
    assert normalize_master_recurrence({"id": "master"}) == []
