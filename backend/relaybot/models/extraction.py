"""
Pydantic models for AI extraction output.

The extraction prompts ask the model for camelCase JSON keys; each field
declares that key as its alias so both spellings validate. Every field is
optional at the model level: which fields are required is a pipeline
decision, not a parsing one.
"""

from typing import Optional

from pydantic import BaseModel, Field


class _ExtractedFields(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}


class EventFields(_ExtractedFields):
    """Raw event extraction output."""

    event_name: Optional[str] = Field(default=None, alias="eventName")
    event_date: Optional[str] = Field(default=None, alias="eventDate")  # YYYY-MM-DD
    event_time: Optional[str] = Field(default=None, alias="eventTime")  # HH:MM, 24h
    end_date: Optional[str] = Field(default=None, alias="endDate")
    end_time: Optional[str] = Field(default=None, alias="endTime")
    venue: Optional[str] = None
    event_url: Optional[str] = Field(default=None, alias="eventUrl")
    description: Optional[str] = Field(default=None, alias="beschrijving")
    publish_to_site: bool = Field(default=True, alias="publishToSite")
    sender_name: Optional[str] = Field(default=None, alias="senderName")

    def missing_required(self) -> list[str]:
        """Return the names of required fields the extraction left empty."""
        missing = []
        if not self.event_name:
            missing.append("event_name")
        if not self.event_date:
            missing.append("event_date")
        return missing


class NewsletterItemFields(_ExtractedFields):
    """Raw newsletter item extraction output."""

    title: Optional[str] = None
    description: Optional[str] = Field(default=None, alias="beschrijving")
    url: Optional[str] = None
    forwarder_name: Optional[str] = Field(default=None, alias="forwarderName")
    original_sender_name: Optional[str] = Field(default=None, alias="originalSenderName")
    topic_summary: Optional[str] = Field(default=None, alias="topicSummary")


class InboxItemFields(_ExtractedFields):
    """Raw inbox (catch-all) extraction output."""

    name: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    sender_name: Optional[str] = Field(default=None, alias="senderName")
