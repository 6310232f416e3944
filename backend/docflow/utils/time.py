"""Time Utilities - UTC timestamps, formatting and business-hour arithmetic"""
from datetime import datetime, timezone, timedelta, time
from typing import Optional, Union
from dateutil import parser as date_parser
from dateutil import tz


SECONDS_PER_HOUR = 3600.0


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Union[datetime, str]) -> datetime:
    """
    Normalize a datetime or ISO string to an aware UTC datetime

    Naive datetimes are assumed to already be UTC.
    """
    if isinstance(value, str):
        return parse_iso(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_iso(dt: datetime) -> str:
    """
    Format datetime to ISO 8601 string

    Args:
        dt: Datetime object

    Returns:
        ISO formatted string with Z suffix for UTC
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 string to datetime

    Args:
        iso_string: ISO formatted datetime string

    Returns:
        Datetime object in UTC
    """
    dt = date_parser.isoparse(iso_string)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    """Wall-clock hours from start to end (negative if end is earlier)"""
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / SECONDS_PER_HOUR


def business_hours_between(
    start: datetime,
    end: datetime,
    tz_name: str = "UTC",
    day_start_hour: int = 9,
    day_end_hour: int = 17
) -> float:
    """
    Hours of [start, end] that fall inside business windows

    A business window is Monday-Friday, day_start_hour:00 to day_end_hour:00
    local time in tz_name. Windows are converted to UTC before the overlap
    is measured so DST changes are accounted for.
    """
    start = ensure_utc(start)
    end = ensure_utc(end)
    if end <= start:
        return 0.0

    zone = tz.gettz(tz_name) or timezone.utc
    local_day = start.astimezone(zone).date()
    last_day = end.astimezone(zone).date()

    total_seconds = 0.0
    while local_day <= last_day:
        if local_day.weekday() < 5:
            window_start = datetime.combine(local_day, time(day_start_hour), tzinfo=zone).astimezone(timezone.utc)
            window_end = datetime.combine(local_day, time(day_end_hour), tzinfo=zone).astimezone(timezone.utc)
            overlap_start = max(start, window_start)
            overlap_end = min(end, window_end)
            if overlap_end > overlap_start:
                total_seconds += (overlap_end - overlap_start).total_seconds()
        local_day += timedelta(days=1)

    return total_seconds / SECONDS_PER_HOUR


def format_duration(minutes: int) -> str:
    """
    Format duration in minutes to human readable string

    Args:
        minutes: Duration in minutes

    Returns:
        Human readable string (e.g., "2h 30m", "1d 4h")
    """
    if minutes < 0:
        return f"-{format_duration(-minutes)}"

    if minutes < 60:
        return f"{minutes}m"

    hours = minutes // 60
    remaining_minutes = minutes % 60

    if hours < 24:
        if remaining_minutes > 0:
            return f"{hours}h {remaining_minutes}m"
        return f"{hours}h"

    days = hours // 24
    remaining_hours = hours % 24

    if remaining_hours > 0:
        return f"{days}d {remaining_hours}h"
    return f"{days}d"


def optional_iso(dt: Optional[datetime]) -> Optional[str]:
    """Format an optional datetime, passing None through"""
    return format_iso(dt) if dt is not None else None
