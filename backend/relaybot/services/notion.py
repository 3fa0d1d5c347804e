"""
Notion record-store client.

Thin wrapper over the Notion REST API (pages, comments, database queries)
using httpx. Three databases are involved:

  events   : calendar events      ("Event name", "Event date", ...)
  content  : newsletter items and the weekly "Nieuwsbrief week N" containers
  inbox    : catch-all items

Every failure (transport error, non-2xx, unparseable body) is raised as
ExternalServiceError("notion", ...). Whether that is fatal is the caller's
decision.
"""

import logging
from typing import Any, Optional

import httpx

from relaybot.config import Settings
from relaybot.errors import ExternalServiceError
from relaybot.models.extraction import EventFields
from relaybot.models.records import CreatedPage, DateRange, WeekRef
from relaybot.services.date_range import to_notion_date

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

# Notion rejects rich_text content longer than this
RICH_TEXT_LIMIT = 2000

CONTENT_TITLE_PROPERTY = "Titel"
NEWSLETTER_PLATFORM = "E-mail-onderdeel"


# ---------------------------------------------------------------------------
# Property builders
# ---------------------------------------------------------------------------

def _title(text: str) -> dict:
    return {"title": [{"text": {"content": text[:RICH_TEXT_LIMIT]}}]}


def _rich_text(text: str) -> dict:
    return {"rich_text": [{"text": {"content": text[:RICH_TEXT_LIMIT]}}]}


def build_event_properties(fields: EventFields, date_range: Optional[DateRange]) -> dict:
    """Map extracted event fields onto the events database schema."""
    properties: dict[str, Any] = {
        "Event name": _title(fields.event_name or "Untitled Event"),
        "Event date": to_notion_date(date_range),
        "site / nieuwsbrief": {"checkbox": fields.publish_to_site},
    }
    if fields.venue:
        properties["Venue"] = _rich_text(fields.venue)
    if fields.event_url:
        properties["Event URL"] = {"url": fields.event_url}
    if fields.description:
        properties["Beschrijving"] = _rich_text(fields.description)
    return properties


def build_content_properties(
    title: str,
    description: Optional[str],
    url: Optional[str],
    week: WeekRef,
) -> dict:
    """Map a newsletter item onto the content database schema."""
    properties: dict[str, Any] = {
        CONTENT_TITLE_PROPERTY: _title(title),
        "Publicatiedatum": {"date": {"start": week.publication_date.isoformat()}},
        "Platform": {"multi_select": [{"name": NEWSLETTER_PLATFORM}]},
    }
    if description:
        properties["Beschrijving"] = _rich_text(description)
    if url:
        properties["URL"] = {"url": url}
    if week.linked_container_id:
        properties["In Nieuwsbrief"] = {"relation": [{"id": week.linked_container_id}]}
    return properties


def build_inbox_properties(name: str, description: Optional[str], url: Optional[str]) -> dict:
    """Map an inbox item onto the inbox database schema."""
    properties: dict[str, Any] = {"Name": _title(name)}
    if description:
        properties["Description"] = _rich_text(description)
    if url:
        properties["URL"] = {"url": url}
    return properties


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class NotionClient:
    """Record-store collaborator backed by the Notion API."""

    def __init__(self, settings: Settings, http: Optional[httpx.Client] = None):
        self.settings = settings
        self._http = http or httpx.Client(
            base_url=NOTION_API_URL,
            timeout=settings.http_timeout,
        )

    def _headers(self) -> dict:
        if not self.settings.notion_secret:
            raise ValueError("NOTION_SECRET is required for record-store operations")
        return {
            "Authorization": f"Bearer {self.settings.notion_secret}",
            "Notion-Version": NOTION_VERSION,
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict:
        try:
            response = self._http.request(method, path, json=json, headers=self._headers())
        except httpx.HTTPError as exc:
            raise ExternalServiceError("notion", f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            raise ExternalServiceError(
                "notion",
                f"{method} {path} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ExternalServiceError("notion", f"{method} {path} returned invalid JSON") from exc

    @staticmethod
    def _require(database_id: Optional[str], env_name: str) -> str:
        if not database_id:
            raise ValueError(f"{env_name} is not configured")
        return database_id

    # -- writes -------------------------------------------------------------

    def create_page(self, database_id: str, properties: dict) -> CreatedPage:
        data = self._request(
            "POST",
            "/pages",
            json={"parent": {"database_id": database_id}, "properties": properties},
        )
        try:
            return CreatedPage(id=data["id"], url=data["url"])
        except KeyError as exc:
            raise ExternalServiceError("notion", f"page response missing {exc}") from exc

    def create_event(self, fields: EventFields, date_range: Optional[DateRange]) -> CreatedPage:
        database_id = self._require(
            self.settings.notion_events_database_id, "NOTION_EVENTS_DATABASE_ID"
        )
        return self.create_page(database_id, build_event_properties(fields, date_range))

    def create_content_item(
        self,
        title: str,
        description: Optional[str],
        url: Optional[str],
        week: WeekRef,
    ) -> CreatedPage:
        database_id = self._require(
            self.settings.notion_content_database_id, "NOTION_CONTENT_DATABASE_ID"
        )
        return self.create_page(
            database_id, build_content_properties(title, description, url, week)
        )

    def create_inbox_item(
        self, name: str, description: Optional[str], url: Optional[str]
    ) -> CreatedPage:
        database_id = self._require(
            self.settings.notion_inbox_database_id, "NOTION_INBOX_DATABASE_ID"
        )
        return self.create_page(database_id, build_inbox_properties(name, description, url))

    def add_comment(self, page_id: str, text: str) -> None:
        self._request(
            "POST",
            "/comments",
            json={
                "parent": {"page_id": page_id},
                "rich_text": [{"text": {"content": text[:RICH_TEXT_LIMIT]}}],
            },
        )

    # -- reads --------------------------------------------------------------

    def find_page_by_title(self, database_id: str, title_property: str, title: str) -> Optional[str]:
        """Return the id of the first page whose title equals title, or None."""
        data = self._request(
            "POST",
            f"/databases/{database_id}/query",
            json={"filter": {"property": title_property, "title": {"equals": title}}},
        )
        results = data.get("results") or []
        if not results:
            return None
        return results[0].get("id")

    def find_content_by_title(self, title: str) -> Optional[str]:
        database_id = self._require(
            self.settings.notion_content_database_id, "NOTION_CONTENT_DATABASE_ID"
        )
        return self.find_page_by_title(database_id, CONTENT_TITLE_PROPERTY, title)

    def test_connection(self) -> dict:
        """Retrieve the events database; used by the health check."""
        try:
            database_id = self._require(
                self.settings.notion_events_database_id, "NOTION_EVENTS_DATABASE_ID"
            )
            data = self._request("GET", f"/databases/{database_id}")
        except (ValueError, ExternalServiceError) as exc:
            return {"success": False, "error": str(exc)}

        title = data.get("title") or []
        return {
            "success": True,
            "databaseTitle": title[0].get("plain_text", "Unknown") if title else "Unknown",
            "properties": list((data.get("properties") or {}).keys()),
        }
