"""Error-to-text conversion shared by every tool handler.

Tools never raise to the MCP dispatcher; whatever goes wrong is reported
back to the agent as a plain text message.
"""

import logging

from .exceptions import AuthenticationRequired, GraphAPIError
from .validators import ValidationError

logger = logging.getLogger(__name__)

AUTH_REQUIRED_MESSAGE = (
    "Authentication required. Please use the 'authenticate' tool first."
)


def is_not_found(exc: Exception) -> bool:
    if isinstance(exc, GraphAPIError) and exc.status_code == 404:
        return True
    return "404" in str(exc)


def error_text(
    exc: Exception,
    action: str,
    tool_name: str,
    not_found: str | None = None,
) -> str:
    """Describe a failure for the calling agent.

    Args:
        exc: The exception caught at the tool boundary.
        action: Gerund phrase used in the generic message, e.g. "creating event".
        tool_name: Tool name for the log record.
        not_found: Friendlier text used when the error is an HTTP 404.
    """
    if isinstance(exc, AuthenticationRequired):
        logger.info("Authentication required", extra={"tool_name": tool_name})
        return AUTH_REQUIRED_MESSAGE

    if isinstance(exc, ValidationError):
        return str(exc)

    if not_found and is_not_found(exc):
        logger.info(f"Resource not found: {exc}", extra={"tool_name": tool_name})
        return not_found

    if isinstance(exc, GraphAPIError):
        logger.error(
            f"Graph API error while {action}: {exc}",
            extra={"tool_name": tool_name, "status_code": exc.status_code},
        )
    else:
        logger.exception(
            f"Unexpected error while {action}", extra={"tool_name": tool_name}
        )
    return f"Error {action}: {exc}"
