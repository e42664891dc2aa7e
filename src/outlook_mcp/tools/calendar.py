import copy
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any

from pydantic import Field

from .. import auth, config, graph
from ..calendar_utils import (
    EVENT_FIELDS_REQUIRED_MESSAGE,
    build_event_request,
    get_calendar_resolver,
)
from ..mcp_instance import mcp
from ..recurrence import (
    DAYS_OF_WEEK,
    PATTERN_TYPES,
    RANGE_TYPES,
    RECURRENCE_JSON_SCHEMA,
    WEEK_INDEXES,
    validate_recurrence_block,
)
from ..responses import error_text
from ..validators import (
    ValidationError,
    clamp_count,
    is_blank,
    normalize_recipients,
    validate_choices,
    validate_iso_datetime,
)

EVENT_NOT_FOUND_MESSAGE = (
    "Event not found. The event may have been deleted or the ID is incorrect. "
    "Use 'list-events' to find valid event IDs."
)
EVENT_ID_REQUIRED_MESSAGE = "Event ID is required. Use 'list-events' to find event IDs."

# Response name -> (Graph action segment, past-tense label)
EVENT_RESPONSES = {
    "accept": ("accept", "accepted"),
    "decline": ("decline", "declined"),
    "tentative": ("tentativelyAccept", "tentatively accepted"),
}

CALENDAR_PARAM_DESCRIPTION = (
    "Calendar name or ID (default: primary calendar). "
    "Use 'list-calendars' to see available calendars."
)
RECURRENCE_DESCRIPTION = (
    "Recurrence for the event (optional; omit for a one-time event). "
    "Object with 'pattern' and 'range'. "
    f"pattern.type: one of {', '.join(PATTERN_TYPES)}; pattern.interval: units "
    "between occurrences (>= 1); pattern.daysOfWeek: list of "
    f"{', '.join(DAYS_OF_WEEK)} (weekly, relativeMonthly, relativeYearly); "
    "pattern.dayOfMonth: 1-31 (absoluteMonthly, absoluteYearly); "
    "pattern.month: 1-12 (absoluteYearly, relativeYearly); "
    f"pattern.index: one of {', '.join(WEEK_INDEXES)} (relativeMonthly, "
    "relativeYearly); pattern.firstDayOfWeek (optional). "
    f"range.type: one of {', '.join(RANGE_TYPES)}; range.startDate: YYYY-MM-DD; "
    "range.endDate: YYYY-MM-DD (endDate ranges); "
    "range.numberOfOccurrences: >= 1 (numbered ranges)."
)


def _recurrence_schema(schema: dict[str, Any]) -> None:
    """Replace the free-form object branch with the structured recurrence schema."""
    for branch in schema.get("anyOf", [schema]):
        if branch.get("type") == "object":
            branch.pop("additionalProperties", None)
            branch.update(copy.deepcopy(RECURRENCE_JSON_SCHEMA))


def _format_calendar(index: int, calendar: dict[str, Any]) -> str:
    is_default = " [DEFAULT]" if calendar.get("isDefaultCalendar") else ""
    owner_name = (calendar.get("owner") or {}).get("name")
    owner = f" (Owner: {owner_name})" if owner_name else ""
    permissions = [
        label
        for key, label in (
            ("canEdit", "edit"),
            ("canShare", "share"),
            ("canViewPrivateItems", "view-private"),
        )
        if calendar.get(key)
    ]
    perms = f" - Permissions: {', '.join(permissions)}" if permissions else ""
    return (
        f"{index}. {calendar.get('name')}{is_default}{owner}{perms}\n"
        f"ID: {calendar.get('id')}\n"
    )


def _format_event_time(value: dict[str, Any] | None) -> str:
    if not value:
        return "Unknown"
    date_time = value.get("dateTime", "Unknown")
    time_zone = value.get("timeZone")
    return f"{date_time} ({time_zone})" if time_zone else date_time


def _format_event(index: int, event: dict[str, Any]) -> str:
    location = (event.get("location") or {}).get("displayName") or "No location"
    recurring = " [RECURRING]" if event.get("recurrence") or event.get(
        "seriesMasterId"
    ) else ""
    return (
        f"{index}. {event.get('subject')}{recurring} - Location: {location}\n"
        f"Start: {_format_event_time(event.get('start'))}\n"
        f"End: {_format_event_time(event.get('end'))}\n"
        f"Summary: {event.get('bodyPreview') or ''}\n"
        f"ID: {event.get('id')}\n"
    )


def _event_window(
    start_date: str | None, end_date: str | None
) -> tuple[datetime, datetime]:
    """Resolve the calendarView window; defaults to the next 30 days."""
    window = timedelta(days=config.UPCOMING_EVENTS_DAYS)
    if start_date:
        start = validate_iso_datetime(start_date, "startDate")
    else:
        start = datetime.now(timezone.utc)
    if end_date:
        end = validate_iso_datetime(end_date, "endDate")
    else:
        end = start + window

    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    if end <= start:
        raise ValidationError("endDate must be later than startDate")
    return start, end


# list-calendars
@mcp.tool(
    name="list-calendars",
    annotations={
        "title": "List Calendars",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True,
    },
    meta={"category": "calendar", "safety_level": "safe"},
)
def list_calendars() -> str:
    """Lists all calendars in your Outlook account"""
    try:
        access_token = auth.ensure_authenticated()
        calendars = get_calendar_resolver().get_all_calendars(access_token)
        if not calendars:
            return "No calendars found."

        calendar_list = "\n".join(
            _format_calendar(i, calendar) for i, calendar in enumerate(calendars, 1)
        )
        return f"Found {len(calendars)} calendars:\n\n{calendar_list}"
    except Exception as e:
        return error_text(e, "listing calendars", "list-calendars")


# list-events
@mcp.tool(
    name="list-events",
    annotations={
        "title": "List Calendar Events",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True,
    },
    meta={"category": "calendar", "safety_level": "safe"},
)
def list_events(
    calendar: Annotated[str | None, Field(description=CALENDAR_PARAM_DESCRIPTION)] = None,
    count: Annotated[
        int | None,
        Field(description="Number of events to retrieve (default: 10, max: 50)"),
    ] = None,
    startDate: Annotated[
        str | None,
        Field(description="Window start (ISO 8601). Defaults to now."),
    ] = None,
    endDate: Annotated[
        str | None,
        Field(description="Window end (ISO 8601). Defaults to 30 days after the start."),
    ] = None,
) -> str:
    """Lists events from your calendar, expanding recurring series.

    Without startDate/endDate this returns upcoming events for the next 30 days.
    """
    top = clamp_count(count, config.DEFAULT_RESULT_COUNT, config.MAX_RESULT_COUNT)
    try:
        window_start, window_end = _event_window(startDate, endDate)
        access_token = auth.ensure_authenticated()
        calendar_path = get_calendar_resolver().resolve_path(access_token, calendar)

        query_params = {
            "startDateTime": window_start.isoformat(),
            "endDateTime": window_end.isoformat(),
            "$top": top,
            "$orderby": "start/dateTime",
            "$select": config.CALENDAR_SELECT_FIELDS,
        }
        response = graph.call_graph_api(
            access_token, "GET", f"{calendar_path}/calendarView", None, query_params
        )

        events = (response or {}).get("value") or []
        if not events:
            return "No calendar events found."

        event_list = "\n".join(_format_event(i, event) for i, event in enumerate(events, 1))
        return f"Found {len(events)} events:\n\n{event_list}"
    except Exception as e:
        return error_text(e, "listing events", "list-events")


# create-event
@mcp.tool(
    name="create-event",
    annotations={
        "title": "Create Calendar Event",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
    meta={"category": "calendar", "safety_level": "moderate"},
)
def create_event(
    subject: Annotated[str, Field(description="The subject of the event")],
    start: Annotated[
        str | dict[str, Any],
        Field(
            description="Start time in ISO 8601 format, or an object with "
            "'dateTime' and optional 'timeZone'"
        ),
    ],
    end: Annotated[
        str | dict[str, Any],
        Field(
            description="End time in ISO 8601 format, or an object with "
            "'dateTime' and optional 'timeZone'"
        ),
    ],
    calendar: Annotated[str | None, Field(description=CALENDAR_PARAM_DESCRIPTION)] = None,
    attendees: Annotated[
        list[str] | None, Field(description="List of attendee email addresses")
    ] = None,
    body: Annotated[
        str | None, Field(description="Optional body content for the event")
    ] = None,
    recurrence: Annotated[
        dict[str, Any] | None,
        Field(
            description=RECURRENCE_DESCRIPTION,
            json_schema_extra=_recurrence_schema,
        ),
    ] = None,
) -> str:
    """Creates a new calendar event (one-time or recurring)"""
    if is_blank(subject) or is_blank(start) or is_blank(end):
        return EVENT_FIELDS_REQUIRED_MESSAGE

    if recurrence:
        problem = validate_recurrence_block(recurrence)
        if problem:
            return f"Invalid recurrence pattern: {problem}"

    try:
        attendee_addresses = normalize_recipients(attendees, "attendees")
        access_token = auth.ensure_authenticated()
        calendar_path = get_calendar_resolver().resolve_path(access_token, calendar)
        request = build_event_request(
            subject,
            start,
            end,
            calendar_path,
            attendees=attendee_addresses,
            body=body,
            recurrence=recurrence,
        )

        result = graph.call_graph_api(
            access_token, request.method, request.path, request.body
        )

        message = f"{request.label} '{subject}' has been successfully created."
        event_id = (result or {}).get("id")
        if event_id:
            message += f"\nEvent ID: {event_id}"
        return message
    except Exception as e:
        return error_text(e, "creating event", "create-event")


# respond-to-event
@mcp.tool(
    name="respond-to-event",
    annotations={
        "title": "Respond to Calendar Event",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True,
    },
    meta={"category": "calendar", "safety_level": "moderate"},
)
def respond_to_event(
    eventId: Annotated[str, Field(description="The ID of the event to respond to")],
    response: Annotated[
        str, Field(description="Response type: accept, decline, or tentative")
    ],
    comment: Annotated[
        str | None, Field(description="Optional message to the organizer")
    ] = None,
    sendResponse: Annotated[
        bool, Field(description="Whether to notify the organizer (default: true)")
    ] = True,
) -> str:
    """Accepts, declines, or tentatively accepts a meeting invitation"""
    if is_blank(eventId):
        return EVENT_ID_REQUIRED_MESSAGE

    try:
        choice = validate_choices(response, EVENT_RESPONSES.keys(), "response")
        action, label = EVENT_RESPONSES[choice]

        access_token = auth.ensure_authenticated()
        payload: dict[str, Any] = {"sendResponse": sendResponse}
        if comment:
            payload["comment"] = comment

        graph.call_graph_api(
            access_token, "POST", f"me/events/{eventId}/{action}", payload
        )

        comment_note = f'\nComment: "{comment}"' if comment else ""
        notify_note = "" if sendResponse else "\n(Organizer was not notified)"
        return f"Event {label} successfully.{comment_note}{notify_note}"
    except Exception as e:
        return error_text(
            e, "responding to event", "respond-to-event", EVENT_NOT_FOUND_MESSAGE
        )


# cancel-event
@mcp.tool(
    name="cancel-event",
    annotations={
        "title": "Cancel Calendar Event",
        "readOnlyHint": False,
        "destructiveHint": True,
        "idempotentHint": True,
        "openWorldHint": True,
    },
    meta={"category": "calendar", "safety_level": "critical"},
)
def cancel_event(
    eventId: Annotated[str, Field(description="The ID of the event to cancel")],
    comment: Annotated[
        str | None, Field(description="Optional comment for cancelling the event")
    ] = None,
) -> str:
    """Cancels a calendar event you organize and notifies attendees"""
    if is_blank(eventId):
        return EVENT_ID_REQUIRED_MESSAGE

    try:
        access_token = auth.ensure_authenticated()
        payload: dict[str, Any] = {}
        if comment:
            payload["comment"] = comment
        graph.call_graph_api(access_token, "POST", f"me/events/{eventId}/cancel", payload)
        return "Event cancelled successfully. Attendees have been notified."
    except Exception as e:
        return error_text(e, "cancelling event", "cancel-event", EVENT_NOT_FOUND_MESSAGE)


# delete-event
@mcp.tool(
    name="delete-event",
    annotations={
        "title": "Delete Calendar Event",
        "readOnlyHint": False,
        "destructiveHint": True,
        "idempotentHint": True,
        "openWorldHint": True,
    },
    meta={"category": "calendar", "safety_level": "critical"},
)
def delete_event(
    eventId: Annotated[str, Field(description="The ID of the event to delete")],
) -> str:
    """Deletes a calendar event from your calendar"""
    if is_blank(eventId):
        return EVENT_ID_REQUIRED_MESSAGE

    try:
        access_token = auth.ensure_authenticated()
        graph.call_graph_api(access_token, "DELETE", f"me/events/{eventId}")
        return "Event deleted successfully."
    except Exception as e:
        return error_text(e, "deleting event", "delete-event", EVENT_NOT_FOUND_MESSAGE)
