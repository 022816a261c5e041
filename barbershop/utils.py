"""Shared utilities: clock-time arithmetic."""

import re

_CLOCK_RE = re.compile(r"^\s*(\d+):(\d+)(?::(\d+))?\s*$")


class InvalidTimeFormat(ValueError):
    """Raised when a clock string is not colon-separated integers."""


def time_to_minutes(clock: str) -> int:
    """Convert ``HH:MM`` (or ``HH:MM:SS``, seconds ignored) to minutes since midnight.

    Examples:
        >>> time_to_minutes("10:15")
        615
        >>> time_to_minutes("17:45:00")
        1065
    """
    match = _CLOCK_RE.match(clock or "")
    if match is None:
        raise InvalidTimeFormat(f"Invalid clock time: {clock!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to zero-padded ``HH:MM``.

    Values past midnight are not wrapped: 1440 becomes ``"24:00"``.
    """
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"

