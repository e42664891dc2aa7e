from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from outlook_mcp.exceptions import GraphAPIError
from outlook_mcp.responses import AUTH_REQUIRED_MESSAGE
from outlook_mcp.tools import calendar as calendar_tools

from conftest import TEST_TOKEN, FakeGraph

DAILY_RECURRENCE = {
    "pattern": {"type": "daily", "interval": 1},
    "range": {"type": "endDate", "startDate": "2024-03-01", "endDate": "2024-03-31"},
}

NOT_FOUND = GraphAPIError("API call failed with status 404: ErrorItemNotFound", 404)


# create-event


def test_create_recurring_event_posts_recurrence_verbatim(
    mock_graph: FakeGraph, authenticated: str
) -> None:
    mock_graph.register("POST", "me/calendar/events", {"id": "evt-1"})

    result = calendar_tools.create_event.fn(
        subject="Daily Standup",
        start="2024-03-01T09:00:00",
        end="2024-03-01T09:15:00",
        recurrence=DAILY_RECURRENCE,
    )

    assert "Recurring event" in result
    assert "Daily Standup" in result
    assert "evt-1" in result
    [call] = mock_graph.calls
    assert call["access_token"] == TEST_TOKEN
    assert call["body"]["recurrence"] == DAILY_RECURRENCE
    assert call["body"]["subject"] == "Daily Standup"


def test_create_one_time_event_message(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("POST", "me/calendar/events", {"id": "evt-2"})

    result = calendar_tools.create_event.fn(
        subject="Lunch",
        start="2024-03-10T12:00:00",
        end="2024-03-10T13:00:00",
        attendees=["pat@example.com", "PAT@example.com"],
    )

    assert result.startswith("Event 'Lunch' has been successfully created.")
    body = mock_graph.calls[0]["body"]
    assert "recurrence" not in body
    assert body["attendees"] == [
        {"emailAddress": {"address": "pat@example.com"}, "type": "required"}
    ]


def test_create_event_in_named_calendar(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register(
        "GET", "me/calendars", {"value": [{"id": "cal-work", "name": "Work"}]}
    )
    mock_graph.register("POST", "me/calendars/cal-work/events", {"id": "evt-3"})

    result = calendar_tools.create_event.fn(
        subject="Review",
        start="2024-03-10T12:00:00",
        end="2024-03-10T13:00:00",
        calendar="work",
    )

    assert "successfully created" in result
    assert mock_graph.calls_to("POST", "me/calendars/cal-work/events")


def test_create_event_invalid_recurrence_makes_no_calls(
    mock_graph: FakeGraph, authenticated: str
) -> None:
    result = calendar_tools.create_event.fn(
        subject="Gym",
        start="2024-03-01T07:00:00",
        end="2024-03-01T08:00:00",
        recurrence={
            "pattern": {"type": "weekly", "interval": 1},
            "range": {"type": "noEnd", "startDate": "2024-03-01"},
        },
    )

    assert result == (
        "Invalid recurrence pattern: "
        "Weekly recurrence requires 'daysOfWeek' to be specified"
    )
    assert mock_graph.calls == []


def test_create_event_requires_subject_and_times(
    mock_graph: FakeGraph, authenticated: str
) -> None:
    result = calendar_tools.create_event.fn(subject="", start="", end="")
    assert result == "Subject, start, and end times are required to create an event."
    assert mock_graph.calls == []


def test_create_event_rejects_bad_attendee(
    mock_graph: FakeGraph, authenticated: str
) -> None:
    result = calendar_tools.create_event.fn(
        subject="Lunch",
        start="2024-03-10T12:00:00",
        end="2024-03-10T13:00:00",
        attendees=["not-an-address"],
    )
    assert "Invalid attendees" in result
    assert mock_graph.calls == []


def test_create_event_requires_authentication(mock_graph: FakeGraph) -> None:
    result = calendar_tools.create_event.fn(
        subject="Lunch", start="2024-03-10T12:00:00", end="2024-03-10T13:00:00"
    )
    assert result == AUTH_REQUIRED_MESSAGE
    assert mock_graph.calls == []


def test_create_event_reports_api_error(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register(
        "POST",
        "me/calendar/events",
        GraphAPIError("API call failed with status 400: bad time", 400),
    )
    result = calendar_tools.create_event.fn(
        subject="Lunch", start="2024-03-10T12:00:00", end="2024-03-10T13:00:00"
    )
    assert result == "Error creating event: API call failed with status 400: bad time"


# respond-to-event


def test_respond_accept_is_case_insensitive(
    mock_graph: FakeGraph, authenticated: str
) -> None:
    mock_graph.register("POST", "me/events/event-123/accept", None)

    result = calendar_tools.respond_to_event.fn(eventId="event-123", response="ACCEPT")

    assert "accepted successfully" in result
    [call] = mock_graph.calls
    assert call["body"] == {"sendResponse": True}


def test_respond_tentative_with_comment_without_notifying(
    mock_graph: FakeGraph, authenticated: str
) -> None:
    mock_graph.register("POST", "me/events/event-123/tentativelyAccept", None)

    result = calendar_tools.respond_to_event.fn(
        eventId="event-123",
        response="tentative",
        comment="Might be late",
        sendResponse=False,
    )

    assert result == (
        "Event tentatively accepted successfully.\n"
        'Comment: "Might be late"\n'
        "(Organizer was not notified)"
    )
    assert mock_graph.calls[0]["body"] == {
        "sendResponse": False,
        "comment": "Might be late",
    }


def test_respond_decline(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("POST", "me/events/event-9/decline", None)
    result = calendar_tools.respond_to_event.fn(eventId="event-9", response="decline")
    assert result == "Event declined successfully."


def test_respond_rejects_unknown_response(
    mock_graph: FakeGraph, authenticated: str
) -> None:
    result = calendar_tools.respond_to_event.fn(eventId="event-123", response="maybe")
    assert "Invalid response 'maybe'" in result
    assert "accept, decline, tentative" in result
    assert mock_graph.calls == []


def test_respond_requires_event_id(mock_graph: FakeGraph, authenticated: str) -> None:
    result = calendar_tools.respond_to_event.fn(eventId="", response="accept")
    assert result == calendar_tools.EVENT_ID_REQUIRED_MESSAGE


def test_respond_to_missing_event(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("POST", "me/events/gone/accept", NOT_FOUND)
    result = calendar_tools.respond_to_event.fn(eventId="gone", response="accept")
    assert result == calendar_tools.EVENT_NOT_FOUND_MESSAGE


# cancel-event / delete-event


def test_cancel_event_with_comment(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("POST", "me/events/event-1/cancel", None)

    result = calendar_tools.cancel_event.fn(eventId="event-1", comment="Moved online")

    assert "cancelled successfully" in result
    assert mock_graph.calls[0]["body"] == {"comment": "Moved online"}


def test_cancel_missing_event(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("POST", "me/events/gone/cancel", NOT_FOUND)
    result = calendar_tools.cancel_event.fn(eventId="gone")
    assert result == calendar_tools.EVENT_NOT_FOUND_MESSAGE


def test_delete_event(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("DELETE", "me/events/event-1", None)
    assert calendar_tools.delete_event.fn(eventId="event-1") == "Event deleted successfully."


def test_delete_requires_event_id(mock_graph: FakeGraph, authenticated: str) -> None:
    assert calendar_tools.delete_event.fn(eventId="  ") == (
        calendar_tools.EVENT_ID_REQUIRED_MESSAGE
    )
    assert mock_graph.calls == []


# list-calendars


def test_list_calendars_formats_entries(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register(
        "GET",
        "me/calendars",
        {
            "value": [
                {
                    "id": "cal-1",
                    "name": "Calendar",
                    "isDefaultCalendar": True,
                    "owner": {"name": "Pat"},
                    "canEdit": True,
                    "canShare": True,
                    "canViewPrivateItems": True,
                },
                {"id": "cal-2", "name": "Holidays"},
            ]
        },
    )

    result = calendar_tools.list_calendars.fn()

    assert result.startswith("Found 2 calendars:\n\n")
    assert (
        "1. Calendar [DEFAULT] (Owner: Pat) - Permissions: edit, share, view-private\n"
        "ID: cal-1\n"
    ) in result
    assert "2. Holidays\nID: cal-2\n" in result


def test_list_calendars_empty(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("GET", "me/calendars", {"value": []})
    assert calendar_tools.list_calendars.fn() == "No calendars found."


# list-events


def test_list_events_defaults_to_thirty_day_window(
    mock_graph: FakeGraph, authenticated: str, make_event
) -> None:
    mock_graph.register("GET", "me/calendar/calendarView", {"value": [make_event()]})

    result = calendar_tools.list_events.fn()

    assert result.startswith("Found 1 events:\n\n1. Planning - Location: Room 1")
    assert "ID: event-1" in result
    params = mock_graph.calls[0]["query_params"]
    start = datetime.fromisoformat(params["startDateTime"])
    end = datetime.fromisoformat(params["endDateTime"])
    assert end - start == timedelta(days=30)
    assert params["$top"] == 10
    assert params["$orderby"] == "start/dateTime"


def test_list_events_date_range_and_count_cap(
    mock_graph: FakeGraph, authenticated: str, make_event
) -> None:
    mock_graph.register("GET", "me/calendar/calendarView", {"value": []})

    result = calendar_tools.list_events.fn(
        count=500, startDate="2024-03-01", endDate="2024-03-08"
    )

    assert result == "No calendar events found."
    params = mock_graph.calls[0]["query_params"]
    assert params["$top"] == 50
    assert params["startDateTime"].startswith("2024-03-01T00:00:00")
    assert params["endDateTime"].startswith("2024-03-08T00:00:00")


def test_list_events_marks_recurring_occurrences(
    mock_graph: FakeGraph, authenticated: str, make_event
) -> None:
    mock_graph.register(
        "GET",
        "me/calendar/calendarView",
        {"value": [make_event(subject="Standup", seriesMasterId="series-1")]},
    )
    assert "1. Standup [RECURRING]" in calendar_tools.list_events.fn()


def test_list_events_rejects_inverted_range(
    mock_graph: FakeGraph, authenticated: str
) -> None:
    result = calendar_tools.list_events.fn(startDate="2024-03-08", endDate="2024-03-01")
    assert result == "endDate must be later than startDate"
    assert mock_graph.calls == []


def test_list_events_rejects_bad_date(mock_graph: FakeGraph, authenticated: str) -> None:
    result = calendar_tools.list_events.fn(startDate="next tuesday")
    assert "Invalid startDate" in result


def test_list_events_reports_api_error(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register(
        "GET",
        "me/calendar/calendarView",
        GraphAPIError("API call failed with status 503: unavailable", 503),
    )
    result = calendar_tools.list_events.fn()
    assert result.startswith("Error listing events")


@pytest.mark.parametrize("tool_name", ["list_calendars", "list_events"])
def test_read_tools_require_authentication(mock_graph: FakeGraph, tool_name: str) -> None:
    assert getattr(calendar_tools, tool_name).fn() == AUTH_REQUIRED_MESSAGE
