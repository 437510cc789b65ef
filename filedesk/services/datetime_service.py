"""Datetime helpers: lax parsing of remote timestamps, ISO output, relative ages."""

from __future__ import annotations

from datetime import datetime, timezone

import pendulum


def parse_datetime(value: str | datetime, default_tz: str = "UTC") -> datetime:
    """Parse a remote timestamp into a timezone-aware datetime.

    GitHub returns ISO 8601 with a ``Z`` suffix; lax variants such as
    ``2026-02-02 22:21`` or a bare date are accepted too. A missing timezone
    defaults to ``default_tz`` and missing time components to midnight.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            tz = pendulum.timezone(default_tz)
            value = value.replace(tzinfo=tz)  # type: ignore[arg-type]
        return value

    parsed = pendulum.parse(value.strip(), tz=default_tz, strict=False)
    if not isinstance(parsed, pendulum.DateTime):
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(
            parsed.year, parsed.month, parsed.day, tz=default_tz  # type: ignore[union-attr]
        )
    return parsed  # type: ignore[return-value]


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 for JSON serialization and storage."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def time_ago(dt: datetime | None) -> str:
    """Describe how long ago ``dt`` was, e.g. ``"5 minutes ago"``.

    Returns ``"Unknown"`` when there is no timestamp.
    """
    if dt is None:
        return "Unknown"
    return pendulum.instance(parse_datetime(dt)).diff_for_humans()
