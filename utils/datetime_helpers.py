"""Timezone-aware date/time helpers for the parking application."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from flask import current_app


def get_timezone() -> ZoneInfo:
    """Get the configured timezone."""
    tz_name = current_app.config.get('TIMEZONE', 'America/Guatemala')
    return ZoneInfo(tz_name)


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime. Default clock of the core."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime, assume_tz=None) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are interpreted in ``assume_tz`` (UTC when omitted).
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=assume_tz or timezone.utc)
    return value.astimezone(timezone.utc)


def to_db(value: datetime | None) -> str | None:
    """
    Serialize a datetime for storage.

    Always the same width (microseconds, +00:00) so that SQL string
    comparison equals chronological comparison.
    """
    if value is None:
        return None
    return to_utc(value).isoformat(timespec='microseconds')


def from_db(value: str | None) -> datetime | None:
    """Parse a stored timestamp back into an aware UTC datetime."""
    if not value:
        return None
    return to_utc(datetime.fromisoformat(value))


def to_iso(value: datetime | None) -> str | None:
    """ISO-8601 string for JSON payloads."""
    return value.isoformat() if value else None
