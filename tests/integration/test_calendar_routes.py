import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.routes.calendar import get_view_service
from app.services.calendar.aggregator import CalendarAggregator
from app.services.calendar.google_client import GoogleCalendarError
from app.services.calendar.view_service import CalendarViewService

ACCOUNT = {"email": "alice@example.com", "access_token": "tok-a"}


@pytest.fixture
def client(fake_transport):
    fake_transport.calendars["tok-a"] = [
        {"id": "primary", "summary": "Alice", "primary": True, "accessRole": "owner"}
    ]
    fake_transport.events[("tok-a", "primary")] = [
        {
            "id": "a",
            "summary": "Design review",
            "start": {"dateTime": "2024-03-04T09:00:00Z"},
            "end": {"dateTime": "2024-03-04T10:00:00Z"},
        },
        {
            "id": "b",
            "summary": "1:1",
            "start": {"dateTime": "2024-03-04T09:30:00Z"},
            "end": {"dateTime": "2024-03-04T10:30:00Z"},
        },
        {
            "id": "c",
            "summary": "Lunch",
            "start": {"dateTime": "2024-03-04T10:15:00Z"},
            "end": {"dateTime": "2024-03-04T10:45:00Z"},
        },
        {"id": "broken", "start": {"dateTime": "2024-03-04T09:00:00Z"}},
    ]
    service = CalendarViewService(CalendarAggregator(transport=fake_transport))
    app.dependency_overrides[get_view_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_sync_returns_sorted_events_and_sources(client):
    response = client.post(
        "/calendar/sync",
        json={
            "accounts": [ACCOUNT],
            "time_min": "2024-03-04T00:00:00Z",
            "time_max": "2024-03-05T00:00:00Z",
            "tasks": [
                {
                    "id": "t1",
                    "title": "Ship",
                    "status": "in_progress",
                    "due_date": "2024-03-04T16:00:00Z",
                }
            ],
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert [event["id"] for event in data["events"]] == ["a", "b", "c"]
    assert data["total_count"] == 3
    assert data["events"][0]["account_email"] == "alice@example.com"
    assert data["calendars"][0]["source_key"] == "alice@example.com:primary"
    assert [marker["id"] for marker in data["task_markers"]] == ["task-t1"]
    assert data["task_markers"][0]["task_status"] == "IN_PROGRESS"
    assert data["failures"] == []
    assert data["sync_error"] is None
    assert data["stale"] is False
    assert data["session_key"] == "alice@example.com"


def test_sync_rejects_reversed_window(client):
    response = client.post(
        "/calendar/sync",
        json={
            "accounts": [ACCOUNT],
            "time_min": "2024-03-05T00:00:00Z",
            "time_max": "2024-03-04T00:00:00Z",
        },
    )

    assert response.status_code == 400


def test_sync_reports_total_failure(client, fake_transport):
    fake_transport.failing_sources[("tok-a", "primary")] = GoogleCalendarError(
        "Calendar authorization expired. Please reconnect.", error_code="401", status_code=401
    )

    response = client.post(
        "/calendar/sync",
        json={
            "accounts": [ACCOUNT],
            "time_min": "2024-03-04T00:00:00Z",
            "time_max": "2024-03-05T00:00:00Z",
        },
    )

    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["failed_accounts"] == ["alice@example.com"]
    assert detail["failures"][0]["status_code"] == 401


def test_view_lays_out_overlapping_events(client):
    response = client.post(
        "/calendar/view",
        json={
            "accounts": [ACCOUNT],
            "start_date": "2024-03-04",
            "days": 1,
            "timezone": "UTC",
            "pixels_per_hour": 60,
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert len(data["days"]) == 1
    positions = {p["event_id"]: p for p in data["days"][0]["positions"]}
    assert positions["a"]["column"] == 0
    assert positions["b"]["column"] == 1
    assert positions["c"]["column"] == 0
    assert {p["total_columns"] for p in positions.values()} == {2}
    assert positions["a"]["top"] == 540
    assert positions["b"]["left_percent"] == 50
    assert data["stale"] is False


def test_view_rejects_unknown_timezone(client):
    response = client.post(
        "/calendar/view",
        json={"accounts": [ACCOUNT], "start_date": "2024-03-04", "timezone": "Mars/Olympus"},
    )

    assert response.status_code == 400


def test_view_validates_day_count(client):
    response = client.post(
        "/calendar/view",
        json={"accounts": [ACCOUNT], "start_date": "2024-03-04", "days": 8},
    )

    assert response.status_code == 422


def test_view_without_active_accounts(client):
    response = client.post(
        "/calendar/view",
        json={
            "accounts": [{**ACCOUNT, "active": False}],
            "start_date": "2024-03-04",
        },
    )

    assert response.status_code == 502


def test_sticky_clamps_only_sticky_items(client):
    response = client.post(
        "/calendar/sticky",
        json={
            "items": [
                {"event_id": "task-1", "top": 1020, "height": 30},
                {"event_id": "meeting", "top": 1200, "height": 60, "sticky": False, "z_index": 11},
            ],
            "viewport": {"scroll_offset": 540, "container_height": 300},
            "pixels_per_hour": 60,
            "sticky_margin": 8,
        },
    )

    assert response.status_code == 200
    placements = {p["event_id"]: p for p in response.json()["placements"]}
    assert placements["task-1"] == {
        "event_id": "task-1",
        "display_top": 802,
        "clamped": True,
        "z_index": 60,
    }
    assert placements["meeting"]["display_top"] == 1200
    assert placements["meeting"]["clamped"] is False
    assert placements["meeting"]["z_index"] == 11


def test_sync_reports_unreachable_account_with_chosen_calendars(client, fake_transport):
    fake_transport.failing_listings.add("tok-b")

    response = client.post(
        "/calendar/sync",
        json={
            "accounts": [
                ACCOUNT,
                {
                    "email": "bob@example.com",
                    "access_token": "tok-b",
                    "enabled_calendar_ids": ["work"],
                },
            ],
            "time_min": "2024-03-04T00:00:00Z",
            "time_max": "2024-03-05T00:00:00Z",
            "session_key": "tab-1",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["failed_accounts"] == ["bob@example.com"]
    assert data["sync_error"] == "failed to sync: bob@example.com"
    assert data["session_key"] == "tab-1"
