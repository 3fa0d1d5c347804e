"""
Compose extracted date/time fields into a record-store date range.

The AI extraction returns an event's schedule as four loose strings
(start date, start time, end date, end time). The record store wants a
single {start, end?} value where timed values carry an explicit UTC offset.
Times are interpreted as Amsterdam local time.
"""

from typing import Optional

from relaybot.models.records import DateRange
from relaybot.services.time_math import amsterdam_offset


def _local_datetime(date_str: str, time_str: str) -> str:
    return f"{date_str}T{time_str}:00{amsterdam_offset(date_str, time_str)}"


def compose_date_range(
    start_date: Optional[str],
    start_time: Optional[str] = None,
    end_date: Optional[str] = None,
    end_time: Optional[str] = None,
) -> Optional[DateRange]:
    """
    Build a DateRange from separate date and time fields.

    Rules:
      - no start_date           → None (the record gets an empty date)
      - start_date only         → all-day value, start is the bare date
      - start_date + start_time → start is a local date-time with offset
      - end is considered only when end_date or end_time was supplied; it
        defaults to the start date and gets its own offset when end_time is
        set, so an event can cross a DST change
      - end is dropped when it comes out identical to start

    Never raises.
    """
    if not start_date:
        return None

    start = _local_datetime(start_date, start_time) if start_time else start_date

    end: Optional[str] = None
    if end_date or end_time:
        end_day = end_date or start_date
        end = _local_datetime(end_day, end_time) if end_time else end_day
        if end == start:
            end = None

    return DateRange(start=start, end=end)


def to_notion_date(date_range: Optional[DateRange]) -> dict:
    """Serialize a DateRange as a Notion date property value."""
    if date_range is None:
        return {"date": None}
    return {"date": date_range.model_dump(exclude_none=True)}
