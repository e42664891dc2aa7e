"""Runtime configuration for the Outlook MCP server.

Values come from environment variables. The server entry point loads a
``.env`` file with python-dotenv before importing the tool modules, so
module-level reads here see those values.

Environment variables:
    OUTLOOK_MCP_CLIENT_ID: Azure app registration (public client) ID.
    OUTLOOK_MCP_TENANT_ID: Authority tenant segment (default: "common").
    OUTLOOK_MCP_TOKEN_PATH: Token file location (default: ~/.outlook-mcp-tokens.json).
    OUTLOOK_MCP_DEFAULT_TIMEZONE: Timezone used when an event time has none
        (default: "UTC").
"""

import os
from pathlib import Path

# ============================================================================
# AUTHENTICATION
# ============================================================================

SCOPES = [
    "Calendars.ReadWrite",
    "Mail.ReadWrite",
    "Mail.Send",
    "User.Read",
]

# Refresh tokens a little early so a token never expires mid-request
TOKEN_REFRESH_MARGIN_SECONDS = 5 * 60


def get_client_id() -> str | None:
    return os.getenv("OUTLOOK_MCP_CLIENT_ID")


def get_tenant_id() -> str:
    return os.getenv("OUTLOOK_MCP_TENANT_ID", "common")


def get_token_path() -> Path:
    override = os.getenv("OUTLOOK_MCP_TOKEN_PATH")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".outlook-mcp-tokens.json"


# ============================================================================
# GRAPH API
# ============================================================================

GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"
REQUEST_TIMEOUT_SECONDS = 30.0

DEFAULT_TIMEZONE = os.getenv("OUTLOOK_MCP_DEFAULT_TIMEZONE", "UTC")

DEFAULT_RESULT_COUNT = 10
MAX_RESULT_COUNT = 50
UPCOMING_EVENTS_DAYS = 30

# References up to this many characters are looked up as calendar names;
# anything longer is used directly as a calendar id
CALENDAR_NAME_MAX_LENGTH = 50
CALENDAR_LOOKUP_TOP = 50

CALENDAR_SELECT_FIELDS = (
    "id,subject,bodyPreview,start,end,location,organizer,attendees,"
    "isAllDay,isCancelled,recurrence"
)
CALENDAR_LIST_SELECT_FIELDS = (
    "id,name,canEdit,canShare,canViewPrivateItems,owner,isDefaultCalendar"
)
EMAIL_SELECT_FIELDS = (
    "id,subject,from,toRecipients,ccRecipients,receivedDateTime,"
    "bodyPreview,hasAttachments,importance,isRead"
)
EMAIL_DETAIL_SELECT_FIELDS = (
    "id,subject,from,toRecipients,ccRecipients,bccRecipients,receivedDateTime,"
    "body,hasAttachments,importance,isRead,internetMessageHeaders"
)

# Friendly folder names accepted by list-emails, mapped to well-known folders
WELL_KNOWN_FOLDERS = {
    "inbox": "inbox",
    "drafts": "drafts",
    "sent": "sentitems",
    "sentitems": "sentitems",
    "deleted": "deleteditems",
    "deleteditems": "deleteditems",
    "junk": "junkemail",
    "junkemail": "junkemail",
    "archive": "archive",
}
