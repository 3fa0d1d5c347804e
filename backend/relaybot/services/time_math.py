"""
Calendar helpers: Amsterdam DST offsets, ISO weeks and weekday arithmetic.

All functions are pure and take naive local dates/times. The DST rule is the
Western-European one, hard-coded rather than looked up in a tz database:

  summer time (+02:00) from the last Sunday of March 02:00
  until the last Sunday of October 03:00 (exclusive), winter (+01:00) otherwise.
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

SUMMER_OFFSET = "+02:00"
WINTER_OFFSET = "+01:00"

THURSDAY = 3  # date.weekday(): Monday == 0


def last_sunday(year: int, month: int) -> date:
    """Return the last Sunday of the given month."""
    last_day = date(year, month, calendar.monthrange(year, month)[1])
    # Sunday-based weekday: Sunday == 0, Saturday == 6
    days_since_sunday = (last_day.weekday() + 1) % 7
    return last_day - timedelta(days=days_since_sunday)


def dst_window(year: int) -> tuple[datetime, datetime]:
    """Return the [start, end) local instants of summer time for year."""
    start = datetime.combine(last_sunday(year, 3), time(2, 0))
    end = datetime.combine(last_sunday(year, 10), time(3, 0))
    return start, end


def _parse_local(date_str: str, time_str: Optional[str] = None) -> Optional[datetime]:
    try:
        day = date.fromisoformat(date_str)
    except (TypeError, ValueError):
        return None

    clock = time(0, 0)
    if time_str:
        try:
            clock = datetime.strptime(time_str, "%H:%M").time()
        except ValueError:
            pass
    return datetime.combine(day, clock)


def amsterdam_offset(date_str: str, time_str: Optional[str] = None) -> str:
    """
    Return the UTC offset ("+01:00" or "+02:00") in effect in Amsterdam at
    the given local date (and time of day, midnight when omitted).

    Unparseable dates resolve to the winter offset.

    On the two transition Sundays the time of day decides the offset, unlike
    a midnight-only lookup, so 2025-03-30 18:00 is +02:00 and 2025-10-26
    18:00 is +01:00.
    """
    local = _parse_local(date_str, time_str)
    if local is None:
        return WINTER_OFFSET

    dst_start, dst_end = dst_window(local.year)
    return SUMMER_OFFSET if dst_start <= local < dst_end else WINTER_OFFSET


def to_amsterdam(moment: datetime) -> datetime:
    """
    Convert an aware datetime to naive Amsterdam local time.

    Both transitions happen at 01:00 UTC, which makes the UTC-side check
    exact.
    """
    utc = moment.astimezone(timezone.utc).replace(tzinfo=None)
    summer_start = datetime.combine(last_sunday(utc.year, 3), time(1, 0))
    summer_end = datetime.combine(last_sunday(utc.year, 10), time(1, 0))
    hours = 2 if summer_start <= utc < summer_end else 1
    return utc + timedelta(hours=hours)


def iso_week_number(day: date) -> int:
    """Return the ISO-8601 week number (1-53) of day."""
    return day.isocalendar()[1]


def next_weekday(now: date, weekday: int) -> date:
    """
    Return the next date after now that falls on weekday (Monday == 0).

    When now already is that weekday the result is a full week later; it is
    never now itself.
    """
    days_ahead = (weekday - now.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7
    return now + timedelta(days=days_ahead)


def next_thursday(now: date) -> date:
    return next_weekday(now, THURSDAY)


def format_date(day: date) -> str:
    return day.isoformat()
