"""Conversions between aware UTC datetimes and the INTEGER unix milliseconds stored in SQLite."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_unix_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def from_unix_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def discord_timestamp(moment: datetime, style: str = "F") -> str:
    """Format ``moment`` as a Discord ``<t:...>`` markdown timestamp."""
    return f"<t:{int(moment.timestamp())}:{style}>"
