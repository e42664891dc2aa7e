"""Shared parameter validation helpers for Outlook MCP tools."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Collection, Iterable, Sequence

LOGGER = logging.getLogger("outlook_mcp.validators")

EMAIL_PATTERN = re.compile(
    r"^(?P<local>[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+)"
    r"@(?P<domain>[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*)$"
)


class ValidationError(ValueError):
    """Raised when parameter validation fails."""


def _mask_value(value: Any) -> str:
    """Return a sanitised representation of a potentially sensitive value."""
    if value is None:
        return "None"

    if isinstance(value, str):
        stripped = value.strip()
        email_match = EMAIL_PATTERN.match(stripped)
        if email_match:
            local = email_match.group("local")
            masked_local = local[0] + "***" if len(local) > 1 else "*"
            return f"{masked_local}@{email_match.group('domain')}"

        if len(stripped) > 64:
            return f"{stripped[:32]}…{stripped[-8:]}"

        return stripped

    return str(value)


def _log_failure(param: str, reason: str, value: Any) -> None:
    """Log validation failure without exposing sensitive data."""
    LOGGER.warning(
        f"Validation failed for {param}: {reason}",
        extra={"param": param, "value": _mask_value(value)},
    )


def is_blank(value: Any) -> bool:
    """True for None, empty/whitespace strings and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def validate_choices(
    value: str,
    allowed: Collection[str],
    param_name: str = "value",
) -> str:
    """Validate that a string value is within an allowed set (case-insensitive).

    Returns the canonical spelling from ``allowed``.
    """
    options = ", ".join(allowed)
    if not isinstance(value, str) or not value.strip():
        _log_failure(param_name, "missing", value)
        raise ValidationError(
            f"{param_name.capitalize()} is required. Must be one of: {options}"
        )

    allowed_map = {item.casefold(): item for item in allowed}
    matched = allowed_map.get(value.strip().casefold())
    if matched is None:
        _log_failure(param_name, "not in allowed set", value)
        raise ValidationError(
            f"Invalid {param_name} '{_mask_value(value)}'. Must be one of: {options}"
        )
    return matched


def validate_email_format(email: str, param_name: str = "email") -> str:
    """Validate email address format and return it trimmed."""
    if not isinstance(email, str):
        _log_failure(param_name, "must be a string", email)
        raise ValidationError(f"Invalid {param_name}: expected an email address")
    trimmed = email.strip()
    if not EMAIL_PATTERN.match(trimmed):
        _log_failure(param_name, "does not match email format", email)
        raise ValidationError(
            f"Invalid {param_name} '{_mask_value(email)}': expected name@example.com"
        )
    return trimmed


def normalize_recipients(
    recipients: str | Sequence[str] | None,
    param_name: str = "recipients",
) -> list[str]:
    """Split comma-separated or list input into validated, de-duplicated addresses."""
    if recipients is None:
        return []
    values: Iterable[str]
    if isinstance(recipients, str):
        values = [part.strip() for part in recipients.split(",")]
    else:
        values = recipients

    normalised: list[str] = []
    seen: set[str] = set()
    for raw in values:
        if is_blank(raw):
            continue
        address = validate_email_format(raw, param_name)
        key = address.casefold()
        if key in seen:
            continue
        seen.add(key)
        normalised.append(address)
    return normalised


def clamp_count(count: Any, default: int, maximum: int) -> int:
    """Coerce a requested result count into 1..maximum, using default when unset."""
    if count is None or isinstance(count, bool):
        return default
    try:
        value = int(count)
    except (TypeError, ValueError):
        return default
    if value < 1:
        return default
    return min(value, maximum)


def validate_iso_datetime(value: str, param_name: str) -> datetime:
    """Parse an ISO-8601 date or datetime string."""
    if not isinstance(value, str) or not value.strip():
        _log_failure(param_name, "missing", value)
        raise ValidationError(f"{param_name} must be an ISO-8601 date or datetime")
    trimmed = value.strip()
    try:
        return datetime.fromisoformat(trimmed.replace("Z", "+00:00"))
    except ValueError as exc:
        _log_failure(param_name, "not ISO-8601", value)
        raise ValidationError(
            f"Invalid {param_name} '{_mask_value(value)}': expected ISO-8601 "
            "such as 2024-03-10 or 2024-03-10T09:00:00"
        ) from exc
