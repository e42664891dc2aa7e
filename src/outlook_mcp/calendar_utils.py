"""Calendar helpers: calendar-name resolution and event request building."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, NamedTuple, Sequence

from . import config, graph
from .validators import ValidationError, is_blank

logger = logging.getLogger(__name__)

PRIMARY_CALENDAR_PATH = "me/calendar"

ApiCall = Callable[..., Any]


def calendar_path_for_id(calendar_id: str) -> str:
    return f"me/calendars/{calendar_id}"


class CalendarCacheEntry(NamedTuple):
    id: str
    name: str


class CalendarCache:
    """Calendar display name to id mapping.

    Keys are compared case-insensitively. Entries never expire; ``clear``
    is the only way to drop them.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CalendarCacheEntry] = {}

    @staticmethod
    def _key(name: str) -> str:
        return name.casefold()

    def get(self, name: str) -> CalendarCacheEntry | None:
        return self._entries.get(self._key(name))

    def put(self, name: str, entry: CalendarCacheEntry) -> None:
        self._entries[self._key(name)] = entry

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key(name) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class CalendarResolver:
    """Turns a calendar reference (name, id or nothing) into a Graph path.

    Resolution never fails: anything that cannot be resolved falls back to
    the primary calendar. Fallbacks are logged with a ``fallback_reason`` of
    ``not_found`` or ``lookup_failed`` so lookup outages stay visible.
    """

    def __init__(
        self,
        cache: CalendarCache | None = None,
        api_call: ApiCall | None = None,
    ) -> None:
        self.cache = cache if cache is not None else CalendarCache()
        self._api_call = api_call

    def _call(self, *args: Any, **kwargs: Any) -> dict[str, Any] | None:
        # Looked up at call time so a patched graph.call_graph_api is honoured
        api_call = self._api_call or graph.call_graph_api
        return api_call(*args, **kwargs)

    def resolve_path(self, access_token: str, calendar: str | None) -> str:
        if not calendar:
            return PRIMARY_CALENDAR_PATH

        if len(calendar) > config.CALENDAR_NAME_MAX_LENGTH:
            return calendar_path_for_id(calendar)

        calendar_id = self.get_calendar_id_by_name(access_token, calendar)
        if calendar_id:
            return calendar_path_for_id(calendar_id)

        return PRIMARY_CALENDAR_PATH

    def get_calendar_id_by_name(
        self, access_token: str, calendar_name: str
    ) -> str | None:
        cached = self.cache.get(calendar_name)
        if cached is not None:
            logger.debug(f"Using cached calendar ID for '{calendar_name}'")
            return cached.id

        try:
            response = self._call(
                access_token,
                "GET",
                "me/calendars",
                None,
                {"$select": "id,name", "$top": config.CALENDAR_LOOKUP_TOP},
            )
        except Exception as e:
            logger.warning(
                f"Calendar lookup for '{calendar_name}' failed, "
                f"falling back to primary calendar: {e}",
                extra={"calendar": calendar_name, "fallback_reason": "lookup_failed"},
            )
            return None

        wanted = calendar_name.casefold()
        for calendar in (response or {}).get("value") or []:
            name = calendar.get("name")
            if isinstance(name, str) and name.casefold() == wanted:
                entry = CalendarCacheEntry(id=calendar["id"], name=name)
                self.cache.put(calendar_name, entry)
                logger.info(f"Found calendar '{calendar_name}' with ID: {entry.id}")
                return entry.id

        logger.warning(
            f"No calendar found matching '{calendar_name}', "
            "falling back to primary calendar",
            extra={"calendar": calendar_name, "fallback_reason": "not_found"},
        )
        return None

    def get_all_calendars(self, access_token: str) -> list[dict[str, Any]]:
        """List the user's calendars, or an empty list if the lookup fails."""
        try:
            response = self._call(
                access_token,
                "GET",
                "me/calendars",
                None,
                {
                    "$select": config.CALENDAR_LIST_SELECT_FIELDS,
                    "$top": config.CALENDAR_LOOKUP_TOP,
                },
            )
        except Exception as e:
            logger.error(f"Error getting all calendars: {e}")
            return []
        return list((response or {}).get("value") or [])


_resolver: CalendarResolver | None = None
_resolver_lock = threading.Lock()


def get_calendar_resolver() -> CalendarResolver:
    global _resolver
    with _resolver_lock:
        if _resolver is None:
            _resolver = CalendarResolver()
        return _resolver


def set_calendar_resolver(resolver: CalendarResolver | None) -> None:
    global _resolver
    with _resolver_lock:
        _resolver = resolver


# -- event requests -----------------------------------------------------------


class EventRequest(NamedTuple):
    method: str
    path: str
    body: dict[str, Any]
    is_recurring: bool

    @property
    def label(self) -> str:
        return "Recurring event" if self.is_recurring else "Event"


EVENT_FIELDS_REQUIRED_MESSAGE = (
    "Subject, start, and end times are required to create an event."
)


def _event_time(value: str | Mapping[str, Any], default_timezone: str) -> dict[str, str]:
    if isinstance(value, Mapping):
        return {
            "dateTime": value.get("dateTime"),
            "timeZone": value.get("timeZone") or default_timezone,
        }
    return {"dateTime": value, "timeZone": default_timezone}


def _has_time(value: Any) -> bool:
    if isinstance(value, Mapping):
        return not is_blank(value.get("dateTime"))
    return not is_blank(value)


def build_event_request(
    subject: str,
    start: str | Mapping[str, Any],
    end: str | Mapping[str, Any],
    calendar_path: str,
    attendees: Sequence[str] | None = None,
    body: str | None = None,
    recurrence: Mapping[str, Any] | None = None,
    default_timezone: str | None = None,
) -> EventRequest:
    """Describe the Graph request that creates an event.

    Times may be ISO-8601 strings or ``{"dateTime", "timeZone"}`` objects;
    a missing timezone becomes ``default_timezone``. The recurrence, when
    given, must already be validated and is attached unchanged.

    Raises:
        ValidationError: If subject, start or end is missing.
    """
    if is_blank(subject) or not _has_time(start) or not _has_time(end):
        raise ValidationError(EVENT_FIELDS_REQUIRED_MESSAGE)

    timezone_name = default_timezone or config.DEFAULT_TIMEZONE
    event: dict[str, Any] = {
        "subject": subject,
        "start": _event_time(start, timezone_name),
        "end": _event_time(end, timezone_name),
        "body": {"contentType": "HTML", "content": body or ""},
    }

    if attendees:
        event["attendees"] = [
            {"emailAddress": {"address": address}, "type": "required"}
            for address in attendees
        ]

    if recurrence:
        event["recurrence"] = recurrence

    return EventRequest(
        method="POST",
        path=f"{calendar_path}/events",
        body=event,
        is_recurring=bool(recurrence),
    )
