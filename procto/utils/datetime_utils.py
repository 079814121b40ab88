"""
Datetime helpers. Everything is stored as naive UTC.
"""
from datetime import datetime, timezone
from typing import Optional


def as_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Return dt as naive UTC (or None). Handles aware/naive inputs."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_iso_datetime(value) -> Optional[datetime]:
    """Parse an ISO-8601 string (a trailing 'Z' is accepted).

    Raises:
        ValueError: value is not a valid ISO timestamp
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"Invalid datetime: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_naive_utc(datetime.fromisoformat(text))


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None
