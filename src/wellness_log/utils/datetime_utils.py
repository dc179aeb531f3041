"""
Date and time utilities.

Records store a calendar day and a minute-resolution wall-clock time as
separate strings; these helpers turn them into timezone-aware datetimes and
do the calendar arithmetic used by period windows.
"""

from datetime import date, datetime, timedelta

import pytz
from dateutil import parser

DATE_FORMAT = "%Y-%m-%d"


def make_timezone_aware(
    dt: datetime, timezone_str: str = "UTC", assume_local: bool = False
) -> datetime:
    """
    Make a datetime object timezone-aware.

    Args:
        dt: Datetime object (may be naive or aware).
        timezone_str: Timezone string (e.g., "Asia/Tokyo").
        assume_local: If True and dt is naive, assume it's in timezone_str.

    Returns:
        Timezone-aware datetime object.
    """
    tz = pytz.timezone(timezone_str)

    if dt.tzinfo is None:
        if assume_local:
            return tz.localize(dt)
        else:
            return pytz.utc.localize(dt).astimezone(tz)
    else:
        return dt.astimezone(tz)


def parse_wall_clock(date_str: str, time_str: str | None = None) -> datetime:
    """
    Parse date and optional time strings into a naive wall-clock datetime.

    Wall-clock datetimes order the way the user entered them, including
    minutes that fall inside a daylight saving gap.

    Args:
        date_str: Date string (YYYY-MM-DD).
        time_str: Optional wall-clock time string (HH:MM).

    Returns:
        Naive datetime object.
    """
    if time_str:
        combined = f"{date_str} {time_str}"
    else:
        combined = date_str

    return parser.isoparse(combined.replace(" ", "T"))


def parse_date(date_str: str) -> date:
    """Parse a YYYY-MM-DD string into a date."""
    return datetime.strptime(date_str, DATE_FORMAT).date()


def shift_date(date_str: str, days: int) -> str:
    """
    Move a YYYY-MM-DD date by a number of calendar days.

    Args:
        date_str: Date string (YYYY-MM-DD).
        days: Days to add (negative moves backwards).

    Returns:
        Shifted date string (YYYY-MM-DD).
    """
    return (parse_date(date_str) + timedelta(days=days)).strftime(DATE_FORMAT)


def within_window(anchor: datetime, candidate: datetime, window: timedelta) -> bool:
    """
    Check whether a candidate timestamp lies no further than ``window`` after the anchor.

    Args:
        anchor: Reference timestamp.
        candidate: Timestamp being compared (expected not to precede the anchor).
        window: Maximum allowed distance.

    Returns:
        True if ``candidate - anchor <= window``.
    """
    return candidate - anchor <= window
