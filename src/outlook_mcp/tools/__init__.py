# Importing the tool modules registers their tools on the shared instance
from ..mcp_instance import mcp

from .account import authenticate, check_auth_status, complete_authentication
from .calendar import (
    cancel_event,
    create_event,
    delete_event,
    list_calendars,
    list_events,
    respond_to_event,
)
from .email import (
    list_emails,
    mark_as_read,
    read_email,
    save_draft,
    send_draft,
    send_email,
)

__all__ = [
    "mcp",
    "authenticate",
    "complete_authentication",
    "check_auth_status",
    "list_calendars",
    "list_events",
    "create_event",
    "respond_to_event",
    "cancel_event",
    "delete_event",
    "list_emails",
    "read_email",
    "send_email",
    "mark_as_read",
    "save_draft",
    "send_draft",
]
