"""Small helpers shared by the routes and the forwarder."""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """
    Format a UTC instant as ISO 8601 with millisecond precision and a Z suffix.

    Example:
        >>> iso_timestamp(datetime(2024, 1, 1, tzinfo=timezone.utc))
        '2024-01-01T00:00:00.000Z'
    """
    moment = moment or utc_now()
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def declared_length(value: Optional[str]) -> Optional[int]:
    """Parse a Content-Length header; None when absent or malformed."""
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        return None
    return length if length >= 0 else None
