# studio_bookings/utils/dates.py
"""
Date and time helpers shared by the classifier, reconciler and waitlist.

All instants handled by the service are timezone-aware. Databases that drop
tzinfo on the way back (SQLite) hand us naive values, which are UTC.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from studio_bookings.core.config import settings

_TIME_PATTERN = re.compile(r"(\d{1,2}):(\d{2})")

NB_WEEKDAYS = ["mandag", "tirsdag", "onsdag", "torsdag", "fredag", "lørdag", "søndag"]
NB_MONTHS = [
    "januar", "februar", "mars", "april", "mai", "juni",
    "juli", "august", "september", "oktober", "november", "desember",
]


def studio_tz() -> ZoneInfo:
    return ZoneInfo(settings.STUDIO_TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes; aware values pass through."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def start_of_day(now: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """Midnight of `now`'s calendar day in the studio timezone."""
    tz = tz or studio_tz()
    local = ensure_aware(now).astimezone(tz)
    return datetime.combine(local.date(), time.min, tzinfo=tz)


def end_of_week(now: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """
    Exclusive upper bound of the current week: midnight after the upcoming
    Sunday. On a Sunday this is the following midnight.
    """
    today = start_of_day(now, tz)
    days_until_sunday = 6 - today.weekday()
    return today + timedelta(days=days_until_sunday + 1)


def calendar_date_key(value: datetime) -> date:
    """Day granularity of a class datetime, in the timezone it is stored with."""
    return value.date()


def extract_time(schedule: Optional[str]) -> Optional[str]:
    """
    Pull the first clock time out of a free-text schedule.

    "Tirsdager og Torsdager, 9:30" -> "09:30"
    """
    if not schedule:
        return None
    match = _TIME_PATTERN.search(schedule)
    if not match:
        return None
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def parse_clock(value: Optional[str]) -> Optional[time]:
    clock = extract_time(value)
    if clock is None:
        return None
    hours, minutes = clock.split(":")
    try:
        return time(int(hours), int(minutes))
    except ValueError:
        return None


def combine_class_datetime(
    class_date: date, class_time: Optional[time], tz: Optional[ZoneInfo] = None
) -> datetime:
    """Aware datetime for a class held on `class_date` at local `class_time`."""
    return datetime.combine(class_date, class_time or time.min, tzinfo=tz or studio_tz())


def format_date_nb(value: Optional[date]) -> str:
    """Long Norwegian date, e.g. 'tirsdag 3. mars 2026'."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return f"{NB_WEEKDAYS[value.weekday()]} {value.day}. {NB_MONTHS[value.month - 1]} {value.year}"


def format_expiry_nb(value: datetime) -> str:
    """Offer deadline as shown in emails, e.g. 'tirsdag 3. mars kl. 18:00'."""
    local = ensure_aware(value).astimezone(studio_tz())
    return (
        f"{NB_WEEKDAYS[local.weekday()]} {local.day}. {NB_MONTHS[local.month - 1]} "
        f"kl. {local.hour:02d}:{local.minute:02d}"
    )
