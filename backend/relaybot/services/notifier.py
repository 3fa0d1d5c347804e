"""
Fire-and-forget notification webhook.

After a record is created the relay posts a short summary to an external
webhook (a Zapier catch hook in production):

  {"type": "event" | "newsletter-item" | "inbox",
   "title": ..., "description": ..., "notionUrl": ...}

Non-2xx responses and transport errors are logged and never retried or
raised; the notification is purely informational.
"""

import logging
from typing import Optional

import httpx

from relaybot.config import Settings

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self, settings: Settings, http: Optional[httpx.Client] = None):
        self.url = settings.notify_webhook_url
        self._http = http or httpx.Client(timeout=settings.http_timeout)

    def notify(self, notification_type: str, title: str, description: str, notion_url: str) -> bool:
        """Post the notification. Returns True when the webhook accepted it."""
        if not self.url:
            logger.info("NOTIFY_WEBHOOK_URL not configured; skipping notification")
            return False

        payload = {
            "type": notification_type,
            "title": title,
            "description": description,
            "notionUrl": notion_url,
        }
        try:
            response = self._http.post(self.url, json=payload)
        except httpx.HTTPError as exc:
            logger.error(f"Failed to send notification: {exc}")
            return False

        if not response.is_success:
            logger.error(f"Notification webhook failed ({response.status_code}): {response.text}")
            return False

        logger.info(f"Notification sent ({notification_type})")
        return True
