"""Time, timezone and epoch utilities."""

from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

UTC = ZoneInfo("UTC")


def get_zone(tz: str | tzinfo) -> tzinfo:
    """Return a tzinfo for a zone name, passing tzinfo objects through."""
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def to_utc(dt: datetime, tz: str | tzinfo) -> datetime:
    """Convert a datetime to UTC, treating naive values as local to `tz`."""
    if dt.tzinfo is None:
        # Assume it's in the given timezone
        dt = dt.replace(tzinfo=get_zone(tz))
    return dt.astimezone(UTC)


def from_utc(dt: datetime, tz: str | tzinfo) -> datetime:
    """Convert a UTC datetime to the given timezone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(get_zone(tz))


def utc_now() -> datetime:
    """Current wall-clock time (UTC)."""
    return datetime.now(UTC)


def to_epoch(dt: datetime) -> float:
    """Seconds since 1970 for an aware datetime."""
    return dt.timestamp()


def from_epoch(epoch: float, tz: str | tzinfo = UTC) -> datetime:
    """Aware datetime in `tz` for an epoch value."""
    return datetime.fromtimestamp(epoch, tz=get_zone(tz))


def local_string(epoch: float, tz: str | tzinfo = UTC) -> str:
    """Short local rendering used in diagnostics lines."""
    return from_epoch(epoch, tz).strftime("%Y-%m-%d %H:%M:%S %Z")


def format_duration(minutes: int) -> str:
    """Format minutes into a human-readable duration.

    Examples:
        15 -> "15 minutes"
        60 -> "1 hour"
        90 -> "1.5 hours"
        1440 -> "1 day"
    """
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    elif minutes < 1440:
        hours = minutes / 60
        if hours == int(hours):
            return f"{int(hours)} hour{'s' if hours != 1 else ''}"
        return f"{hours:.1f} hours"
    else:
        days = minutes / 1440
        if days == int(days):
            return f"{int(days)} day{'s' if days != 1 else ''}"
        return f"{days:.1f} days"


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """Format a datetime relative to now.

    Examples:
        "in 5 minutes"
        "in 2 hours"
        "tomorrow"
        "2 minutes ago"
    """
    if now is None:
        now = utc_now()

    total_seconds = dt.timestamp() - now.timestamp()

    if total_seconds < 0:
        abs_seconds = abs(total_seconds)
        if abs_seconds < 3600:
            minutes = int(abs_seconds / 60)
            return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
        elif abs_seconds < 86400:
            hours = int(abs_seconds / 3600)
            return f"{hours} hour{'s' if hours != 1 else ''} ago"
        else:
            days = int(abs_seconds / 86400)
            return f"{days} day{'s' if days != 1 else ''} ago"
    else:
        if total_seconds < 3600:
            minutes = int(total_seconds / 60)
            return f"in {minutes} minute{'s' if minutes != 1 else ''}"
        elif total_seconds < 86400:
            hours = int(total_seconds / 3600)
            return f"in {hours} hour{'s' if hours != 1 else ''}"
        elif total_seconds < 172800:  # 2 days
            return "tomorrow"
        else:
            days = int(total_seconds / 86400)
            return f"in {days} days"
