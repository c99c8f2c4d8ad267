"""
Duration tokens for temporary sanctions.

A token is one positive integer followed by one unit (``s``, ``m``, ``h`` or
``d``, case-insensitive). Compound tokens such as ``1h30m`` are rejected.
Durations are expressed in milliseconds.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from warden.sanctions.errors import DurationOutOfRange, InvalidDuration

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

UNIT_MULTIPLIERS = {
    "s": SECOND_MS,
    "m": MINUTE_MS,
    "h": HOUR_MS,
    "d": DAY_MS,
}

_TOKEN_PATTERN = re.compile(r"^(\d+)([smhd])$", re.IGNORECASE)

DEFAULT_MIN_DURATION_MS = MINUTE_MS
DEFAULT_MAX_DURATION_MS = 30 * DAY_MS


def parse_duration(token: str) -> int:
    """
    Convert a duration token into milliseconds.

    Args:
        token: Human-entered token, e.g. ``"30m"``.

    Returns:
        int: Duration in milliseconds.

    Raises:
        InvalidDuration: If the token is malformed or its value is zero.
    """
    match = _TOKEN_PATTERN.match((token or "").strip())
    if not match:
        raise InvalidDuration(token)

    value = int(match.group(1))
    if value <= 0:
        raise InvalidDuration(token)

    return value * UNIT_MULTIPLIERS[match.group(2).lower()]


def format_duration(duration_ms: int) -> str:
    """Render a duration using its largest whole unit, e.g. ``"2 hours"``."""
    seconds = duration_ms // SECOND_MS
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days} day{'s' if days != 1 else ''}"
    if hours > 0:
        return f"{hours} hour{'s' if hours != 1 else ''}"
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"


@dataclass(frozen=True, slots=True)
class DurationBounds:
    """Inclusive lower and upper limits for one sanction kind."""
    min_ms: int = DEFAULT_MIN_DURATION_MS
    max_ms: int = DEFAULT_MAX_DURATION_MS

    def check(self, duration_ms: int, label: str = "Sanctions") -> int:
        """Return ``duration_ms`` unchanged or raise ``DurationOutOfRange``."""
        if duration_ms > self.max_ms:
            raise DurationOutOfRange(
                f"{label} cannot exceed {format_duration(self.max_ms)}.", duration_ms
            )
        if duration_ms < self.min_ms:
            raise DurationOutOfRange(
                f"{label} must be at least {format_duration(self.min_ms)} long.", duration_ms
            )
        return duration_ms

    @classmethod
    def from_tokens(cls, min_token: str, max_token: str) -> "DurationBounds":
        bounds = cls(parse_duration(min_token), parse_duration(max_token))
        if bounds.min_ms > bounds.max_ms:
            raise ValueError(f"Minimum duration {min_token} exceeds maximum {max_token}")
        return bounds
