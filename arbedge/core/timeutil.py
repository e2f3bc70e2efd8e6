"""
Time utilities for ArbEdge.

All internal timestamps are timezone-aware UTC; the store keeps naive UTC
and the CLI converts to the configured timezone for display.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytz

from arbedge.core.config import get_settings


def get_timezone() -> pytz.BaseTzInfo:
    """Get configured display timezone."""
    return pytz.timezone(get_settings().timezone)


def now_utc() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def to_local(dt: datetime) -> datetime:
    """Convert datetime to configured timezone."""
    tz = get_timezone()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz)


def to_naive_utc(dt: datetime) -> datetime:
    """Strip tzinfo after converting to UTC (storage format)."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def from_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive datetime read back from storage."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def format_timestamp(dt: Optional[datetime] = None, fmt: str = "iso") -> str:
    """
    Format datetime to string.

    Args:
        dt: Datetime to format. Uses current UTC time if not provided.
        fmt: Format type - 'iso', 'display', 'date', 'time'

    Returns:
        Formatted string
    """
    if dt is None:
        dt = now_utc()

    formats = {
        "iso": "%Y-%m-%dT%H:%M:%SZ",
        "display": "%Y-%m-%d %H:%M:%S",
        "date": "%Y-%m-%d",
        "time": "%H:%M:%S",
    }

    return dt.strftime(formats.get(fmt, fmt))


def parse_timestamp(s: str, fmt: str = "iso") -> datetime:
    """
    Parse string to datetime.

    Args:
        s: String to parse
        fmt: Format type or strptime format string

    Returns:
        Parsed datetime (UTC)
    """
    if fmt == "iso":
        # Upstreams send both "...Z" and "...+00:00"
        dt = datetime.fromisoformat(s.strip().replace("Z", "+00:00"))
    else:
        formats = {
            "display": "%Y-%m-%d %H:%M:%S",
            "date": "%Y-%m-%d",
        }
        dt = datetime.strptime(s, formats.get(fmt, fmt))

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hours_ago(n: float, from_dt: Optional[datetime] = None) -> datetime:
    """Get datetime n hours ago."""
    base = from_dt or now_utc()
    return base - timedelta(hours=n)


def minutes_ago(n: float, from_dt: Optional[datetime] = None) -> datetime:
    """Get datetime n minutes ago."""
    base = from_dt or now_utc()
    return base - timedelta(minutes=n)
