import logging
import threading
from typing import Annotated, Any

from pydantic import Field

from .. import auth
from ..exceptions import AuthenticationError
from ..mcp_instance import mcp

logger = logging.getLogger(__name__)

# Device-code flow started by 'authenticate' and awaiting 'complete-authentication'
_pending_flow: dict[str, Any] | None = None
_pending_lock = threading.Lock()


def _set_pending_flow(flow: dict[str, Any] | None) -> None:
    global _pending_flow
    with _pending_lock:
        _pending_flow = flow


def _get_pending_flow() -> dict[str, Any] | None:
    with _pending_lock:
        return _pending_flow


# authenticate
@mcp.tool(
    name="authenticate",
    annotations={
        "title": "Authenticate with Microsoft",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
    meta={"category": "account", "safety_level": "moderate"},
)
def authenticate(
    force: Annotated[
        bool,
        Field(description="Start a new sign-in even if already authenticated"),
    ] = False,
) -> str:
    """Authenticate with Microsoft Graph using the device-code flow.

    Returns a verification URL and a code. The user must:
    1. Visit the verification URL
    2. Enter the code and sign in
    3. Run 'complete-authentication' to finish
    """
    provider = auth.get_token_provider()
    if not force and provider.has_tokens():
        return (
            "Already authenticated with Microsoft Graph. "
            "Use force=true to sign in again."
        )

    try:
        flow = auth.start_device_flow()
    except AuthenticationError as e:
        logger.error(f"Could not start device code flow: {e}", extra={"tool_name": "authenticate"})
        return f"Authentication failed: {e}"

    _set_pending_flow(flow)
    url = auth.verification_uri(flow)
    expires_in = flow.get("expires_in", 900)
    return (
        "To authenticate with Microsoft Graph:\n\n"
        f"1. Visit: {url}\n"
        f"2. Enter code: {flow['user_code']}\n"
        "3. Sign in with your Microsoft account\n"
        "4. Use the 'complete-authentication' tool to finish\n\n"
        f"The code expires in {expires_in // 60} minutes."
    )


# complete-authentication
@mcp.tool(
    name="complete-authentication",
    annotations={
        "title": "Complete Authentication",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
    meta={"category": "account", "safety_level": "moderate"},
)
def complete_authentication() -> str:
    """Finish the device-code sign-in started by 'authenticate'"""
    flow = _get_pending_flow()
    if flow is None:
        return "No authentication in progress. Use the 'authenticate' tool first."

    try:
        result = auth.complete_device_flow(flow, wait=False)
    except AuthenticationError as e:
        _set_pending_flow(None)
        logger.error(
            f"Device code flow failed: {e}",
            extra={"tool_name": "complete-authentication"},
        )
        return f"Authentication failed: {e}"

    if "access_token" in result:
        _set_pending_flow(None)
        claims = result.get("id_token_claims") or {}
        username = claims.get("preferred_username")
        who = f" as {username}" if username else ""
        return f"Authentication successful{who}! You can now use the Outlook tools."

    error = result.get("error", "")
    if error == "authorization_pending":
        return (
            "Authentication is still pending. Visit the URL, enter the code, "
            "then run 'complete-authentication' again."
        )

    _set_pending_flow(None)
    error_message = result.get("error_description") or error or "Unknown error"
    logger.warning(
        f"Device code flow ended without a token: {error_message}",
        extra={"tool_name": "complete-authentication"},
    )
    return f"Authentication failed: {error_message}"


# check-auth-status
@mcp.tool(
    name="check-auth-status",
    annotations={
        "title": "Check Authentication Status",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False,
    },
    meta={"category": "account", "safety_level": "safe"},
)
def check_auth_status() -> str:
    """Reports whether a Microsoft Graph token is stored and still valid"""
    provider = auth.get_token_provider()
    token = provider.current_token()
    if token is None:
        return "Not authenticated. Use the 'authenticate' tool to sign in."

    expires = token.expires_at.isoformat()
    if provider.is_expired(token):
        return (
            f"Authenticated, but the access token expired at {expires}. "
            "It will be refreshed automatically on the next request."
        )
    return f"Authenticated. Access token valid until {expires}."
