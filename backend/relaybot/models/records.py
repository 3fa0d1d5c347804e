"""
Pydantic models for record-store values and pipeline results.

  DateRange       : wire date-range for a date-valued record property
  WeekRef         : publication week of a newsletter item and its container
  CreatedPage     : identity of a page the record store just created
  PipelineResult  : what a pipeline hands back to the webhook router
"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel

from relaybot.services.routing import PipelineKind


class DateRange(BaseModel):
    """
    start/end are either a bare date (YYYY-MM-DD, all-day) or a local
    date-time with UTC offset (YYYY-MM-DDTHH:MM:00+02:00).

    end is only set when it differs from start.
    """

    start: str
    end: Optional[str] = None


class WeekRef(BaseModel):
    """
    The weekly newsletter a content item is published in.

    linked_container_id is None when no container page with the expected
    title exists yet; that is a warning, not an error.
    """

    week_number: int
    publication_date: date
    container_title: str
    linked_container_id: Optional[str] = None


class CreatedPage(BaseModel):
    id: str
    url: str


class PipelineResult(BaseModel):
    """Outcome of a successful pipeline run."""

    kind: PipelineKind
    title: str
    record_url: str
    parsed_data: dict[str, Any] = {}

    # Newsletter pipeline only
    week_number: Optional[int] = None
    publication_date: Optional[date] = None
    linked_container: Optional[str] = None
