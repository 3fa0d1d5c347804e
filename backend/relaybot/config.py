"""
Runtime configuration.

Everything the relay needs from the environment is read once, at startup,
into a Settings object. Collaborators receive that object explicitly instead
of reading os.environ themselves, so the pure parts of the relay (routing,
date composition, week math) need no configuration at all.

A .env file next to the process is honoured via python-dotenv.
"""

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"


class Settings(BaseModel):
    """Read-only process configuration."""

    model_config = {"frozen": True}

    # AI extraction
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL

    # Record store (Notion)
    notion_secret: Optional[str] = None
    notion_events_database_id: Optional[str] = None
    notion_content_database_id: Optional[str] = None
    notion_inbox_database_id: Optional[str] = None

    # Transactional email (Brevo)
    brevo_api_key: Optional[str] = None
    mail_from_email: str = "noreply@ciiic.nl"
    mail_from_name: str = "CIIIC Event Bot"

    # Fire-and-forget notification webhook
    notify_webhook_url: Optional[str] = None

    # Timeout (seconds) applied to every outbound HTTP call
    http_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Build Settings from os.environ (after loading .env, if present)."""
        load_dotenv()

        def _get(name: str) -> Optional[str]:
            value = os.getenv(name, "").strip()
            return value or None

        return cls(
            anthropic_api_key=_get("ANTHROPIC_API_KEY"),
            anthropic_model=_get("ANTHROPIC_MODEL") or DEFAULT_ANTHROPIC_MODEL,
            notion_secret=_get("NOTION_SECRET"),
            notion_events_database_id=_get("NOTION_EVENTS_DATABASE_ID"),
            notion_content_database_id=_get("NOTION_CONTENT_DATABASE_ID"),
            notion_inbox_database_id=_get("NOTION_INBOX_DATABASE_ID"),
            brevo_api_key=_get("BREVO_API_KEY"),
            mail_from_email=_get("MAIL_FROM_EMAIL") or "noreply@ciiic.nl",
            mail_from_name=_get("MAIL_FROM_NAME") or "CIIIC Event Bot",
            notify_webhook_url=_get("NOTIFY_WEBHOOK_URL"),
            http_timeout=float(_get("HTTP_TIMEOUT") or 30.0),
        )


@lru_cache
def get_settings() -> Settings:
    """
    Return the process-wide Settings, built on first use.

    Also used as a FastAPI dependency; tests override it through
    app.dependency_overrides instead of touching the environment.
    """
    return Settings.from_env()
