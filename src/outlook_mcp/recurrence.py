"""Recurrence validation for calendar event creation.

A recurrence is a ``pattern`` (how often) plus a ``range`` (for how long), in
the shape Microsoft Graph expects. Both halves are discriminated unions keyed
by their ``type`` field. Validation checks the structural rules in a fixed
order and reports only the first rule that fails, so callers always see one
specific message.
"""

from __future__ import annotations

from typing import Any, Callable, Literal, Mapping, TypedDict, Union, get_args

PatternType = Literal[
    "daily",
    "weekly",
    "absoluteMonthly",
    "relativeMonthly",
    "absoluteYearly",
    "relativeYearly",
]
RangeType = Literal["endDate", "noEnd", "numbered"]
DayOfWeek = Literal[
    "sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"
]
WeekIndex = Literal["first", "second", "third", "fourth", "last"]

PATTERN_TYPES: tuple[str, ...] = get_args(PatternType)
RANGE_TYPES: tuple[str, ...] = get_args(RangeType)
DAYS_OF_WEEK: tuple[str, ...] = get_args(DayOfWeek)
WEEK_INDEXES: tuple[str, ...] = get_args(WeekIndex)


class _PatternBase(TypedDict, total=False):
    interval: int
    firstDayOfWeek: DayOfWeek


class DailyPattern(_PatternBase):
    type: Literal["daily"]


class WeeklyPattern(_PatternBase):
    type: Literal["weekly"]
    daysOfWeek: list[DayOfWeek]


class AbsoluteMonthlyPattern(_PatternBase):
    type: Literal["absoluteMonthly"]
    dayOfMonth: int


class RelativeMonthlyPattern(_PatternBase):
    type: Literal["relativeMonthly"]
    daysOfWeek: list[DayOfWeek]
    index: WeekIndex


class AbsoluteYearlyPattern(_PatternBase):
    type: Literal["absoluteYearly"]
    dayOfMonth: int
    month: int


class RelativeYearlyPattern(_PatternBase):
    type: Literal["relativeYearly"]
    daysOfWeek: list[DayOfWeek]
    index: WeekIndex
    month: int


RecurrencePattern = Union[
    DailyPattern,
    WeeklyPattern,
    AbsoluteMonthlyPattern,
    RelativeMonthlyPattern,
    AbsoluteYearlyPattern,
    RelativeYearlyPattern,
]


class _RangeBase(TypedDict, total=False):
    startDate: str
    recurrenceTimeZone: str


class EndDateRange(_RangeBase):
    type: Literal["endDate"]
    endDate: str


class NoEndRange(_RangeBase):
    type: Literal["noEnd"]


class NumberedRange(_RangeBase):
    type: Literal["numbered"]
    numberOfOccurrences: int


RecurrenceRange = Union[EndDateRange, NoEndRange, NumberedRange]


class Recurrence(TypedDict):
    pattern: RecurrencePattern
    range: RecurrenceRange


# JSON schema advertised to MCP clients for the recurrence tool parameter.
# Type-specific requirements are checked by validate_recurrence.
RECURRENCE_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "pattern": {
            "type": "object",
            "properties": {
                "type": {"type": "string", "enum": list(PATTERN_TYPES)},
                "interval": {"type": "integer", "minimum": 1},
                "daysOfWeek": {
                    "type": "array",
                    "items": {"type": "string", "enum": list(DAYS_OF_WEEK)},
                },
                "dayOfMonth": {"type": "integer", "minimum": 1, "maximum": 31},
                "month": {"type": "integer", "minimum": 1, "maximum": 12},
                "index": {"type": "string", "enum": list(WEEK_INDEXES)},
                "firstDayOfWeek": {"type": "string", "enum": list(DAYS_OF_WEEK)},
            },
            "required": ["type", "interval"],
        },
        "range": {
            "type": "object",
            "properties": {
                "type": {"type": "string", "enum": list(RANGE_TYPES)},
                "startDate": {"type": "string", "format": "date"},
                "endDate": {"type": "string", "format": "date"},
                "numberOfOccurrences": {"type": "integer", "minimum": 1},
                "recurrenceTimeZone": {"type": "string"},
            },
            "required": ["type", "startDate"],
        },
    },
    "required": ["pattern", "range"],
}


def _missing(value: Any) -> bool:
    return value is None or value == "" or value == []


def _is_whole_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def _require(
    pattern: Mapping[str, Any], fields: tuple[str, ...], message: str
) -> Callable[[], str | None]:
    def check() -> str | None:
        if any(_missing(pattern.get(field)) for field in fields):
            return message
        return None

    return check


def _pattern_checks(pattern: Mapping[str, Any]) -> dict[str, Callable[[], str | None]]:
    return {
        "daily": lambda: None,
        "weekly": _require(
            pattern,
            ("daysOfWeek",),
            "Weekly recurrence requires 'daysOfWeek' to be specified",
        ),
        "absoluteMonthly": _require(
            pattern,
            ("dayOfMonth",),
            "Absolute monthly recurrence requires 'dayOfMonth' to be specified",
        ),
        "relativeMonthly": _require(
            pattern,
            ("daysOfWeek", "index"),
            "Relative monthly recurrence requires 'daysOfWeek' and 'index' "
            "to be specified",
        ),
        "absoluteYearly": _require(
            pattern,
            ("dayOfMonth", "month"),
            "Absolute yearly recurrence requires 'dayOfMonth' and 'month' "
            "to be specified",
        ),
        "relativeYearly": _require(
            pattern,
            ("daysOfWeek", "index", "month"),
            "Relative yearly recurrence requires 'daysOfWeek', 'index', and "
            "'month' to be specified",
        ),
    }


def _validate_pattern(
    pattern: RecurrencePattern | Mapping[str, Any] | None,
) -> str | None:
    if not isinstance(pattern, Mapping) or _missing(pattern.get("type")) or _missing(
        pattern.get("interval")
    ):
        return "Recurrence pattern must include 'type' and 'interval'"

    interval = pattern["interval"]
    if not _is_whole_number(interval):
        return "Recurrence interval must be a whole number of at least 1"
    if interval < 1:
        return "Recurrence interval must be at least 1"

    check = _pattern_checks(pattern).get(pattern["type"])
    if check is None:
        return (
            f"Unknown recurrence pattern type '{pattern['type']}'. "
            f"Must be one of: {', '.join(PATTERN_TYPES)}"
        )
    return check()


def _validate_range(
    range_: RecurrenceRange | Mapping[str, Any] | None,
) -> str | None:
    if not isinstance(range_, Mapping) or _missing(range_.get("type")) or _missing(
        range_.get("startDate")
    ):
        return "Recurrence range must include 'type' and 'startDate'"

    range_type = range_["type"]
    if range_type == "endDate":
        if _missing(range_.get("endDate")):
            return (
                "Recurrence range type 'endDate' requires 'endDate' to be specified"
            )
        return None

    if range_type == "numbered":
        # Presence, not truthiness: 0 is "provided" and fails the minimum below
        occurrences = range_.get("numberOfOccurrences")
        if occurrences is None or occurrences == "":
            return (
                "Recurrence range type 'numbered' requires 'numberOfOccurrences' "
                "to be specified"
            )
        if not _is_whole_number(occurrences):
            return "Number of occurrences must be a whole number of at least 1"
        if occurrences < 1:
            return "Number of occurrences must be at least 1"
        return None

    if range_type == "noEnd":
        return None

    return (
        f"Unknown recurrence range type '{range_type}'. "
        f"Must be one of: {', '.join(RANGE_TYPES)}"
    )


def validate_recurrence(
    pattern: RecurrencePattern | Mapping[str, Any] | None,
    range_: RecurrenceRange | Mapping[str, Any] | None,
) -> str | None:
    """Check a recurrence pattern and range.

    Returns:
        None when the recurrence is valid, otherwise a message describing the
        first rule that failed. Pattern rules are checked before range rules.
    """
    return _validate_pattern(pattern) or _validate_range(range_)


def validate_recurrence_block(
    recurrence: Recurrence | Mapping[str, Any] | None,
) -> str | None:
    """Validate a ``{"pattern": ..., "range": ...}`` object from a tool call."""
    if recurrence is None:
        return None
    if not isinstance(recurrence, Mapping):
        return "Recurrence must be an object with 'pattern' and 'range'"
    return validate_recurrence(recurrence.get("pattern"), recurrence.get("range"))
