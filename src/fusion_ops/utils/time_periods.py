"""
Time-period conversions for protection policy objectives.

Users write periods in a human-readable form ("2d", "3w5h", "1Y32D", or a
bare number of minutes); the API expects ISO8601 minute durations ("PT10M").
"""

import re

HOUR_IN_MINUTES = 60
DAY_IN_MINUTES = 24 * HOUR_IN_MINUTES
WEEK_IN_MINUTES = 7 * DAY_IN_MINUTES
YEAR_IN_MINUTES = 365 * DAY_IN_MINUTES

_UNIT_MINUTES = {
    "Y": YEAR_IN_MINUTES,
    "W": WEEK_IN_MINUTES,
    "D": DAY_IN_MINUTES,
    "H": HOUR_IN_MINUTES,
    "M": 1,
}

_HUMAN_READABLE_RE = re.compile(r"^(\d+Y)?(\d+W)?(\d+D)?(\d+H)?(\d+M)?$")
_UNIT_RE = re.compile(r"(\d+)([YWDHM])")
_ISO8601_MINUTES_RE = re.compile(r"^PT(\d+)M$")


class TimePeriodFormatError(ValueError):
    """Raised when a period string matches neither accepted format."""


HUMAN_READABLE_FORMAT_ERROR = (
    "wrong format, expected human-readable time period (e.g. 2d, 3w5h, 1Y32D)"
)
ISO8601_FORMAT_ERROR = "wrong format, expected ISO8601 minutes (e.g. PT10M)"


def parse_human_readable_period(value: str) -> int:
    """
    Convert a human-readable period into minutes.

    Units are case-insensitive and must appear in Y, W, D, H, M order, each
    at most once. A bare integer is taken as minutes.

    Examples:
        >>> parse_human_readable_period("3w5h")
        30540
        >>> parse_human_readable_period("90")
        90
    """
    if not value:
        raise TimePeriodFormatError(HUMAN_READABLE_FORMAT_ERROR)

    normalized = value.strip().upper()
    if normalized.isdigit():
        return int(normalized)

    if not _HUMAN_READABLE_RE.match(normalized):
        raise TimePeriodFormatError(HUMAN_READABLE_FORMAT_ERROR)

    return sum(int(amount) * _UNIT_MINUTES[unit] for amount, unit in _UNIT_RE.findall(normalized))


def minutes_to_iso8601(minutes: int) -> str:
    return f"PT{minutes}M"


def iso8601_minutes_to_int(value: str) -> int:
    """Parse "PT<n>M" into n; any other ISO8601 duration is rejected."""
    match = _ISO8601_MINUTES_RE.match(value or "")
    if match is None:
        raise TimePeriodFormatError(ISO8601_FORMAT_ERROR)
    return int(match.group(1))
