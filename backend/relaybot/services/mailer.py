"""
Transactional email via the Brevo REST API.

Used for the confirmation mail after a record is created and for the error
mail when an event could not be extracted. All mail is best-effort from the
pipeline's point of view; this module still raises ExternalServiceError on
failure and leaves the swallowing to the caller.
"""

import html
import logging
from typing import Optional

import httpx

from relaybot.config import Settings
from relaybot.errors import ExternalServiceError

logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3"

_FOOTER_HTML = """\
  <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
  <p style="color: #999; font-size: 12px;">
    Dit is een automatisch bericht van de CIIIC Bot.
  </p>"""

_FOOTER_TEXT = "---\nDit is een automatisch bericht van de CIIIC Bot."


def _wrap_html(inner: str) -> str:
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n  <meta charset=\"utf-8\">\n</head>\n"
        "<body style=\"font-family: Arial, sans-serif; line-height: 1.6; color: #333;\">\n"
        f"{inner}\n{_FOOTER_HTML}\n</body>\n</html>\n"
    )


def _button(url: str) -> str:
    return (
        f"  <p>\n    <a href=\"{html.escape(url, quote=True)}\" style=\"display: inline-block; "
        "padding: 10px 20px; background-color: #000; color: #fff; text-decoration: none; "
        "border-radius: 4px;\">\n      Bekijk in Notion\n    </a>\n  </p>"
    )


class MailClient:
    """Mail collaborator backed by Brevo's transactional email API."""

    def __init__(self, settings: Settings, http: Optional[httpx.Client] = None):
        self.settings = settings
        self._http = http or httpx.Client(base_url=BREVO_API_URL, timeout=settings.http_timeout)

    def _headers(self) -> dict:
        if not self.settings.brevo_api_key:
            raise ValueError("BREVO_API_KEY is not configured")
        return {
            "accept": "application/json",
            "api-key": self.settings.brevo_api_key,
            "content-type": "application/json",
        }

    def send_email(
        self,
        to: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        to_name: Optional[str] = None,
    ) -> dict:
        """Send one email. Returns Brevo's response body (contains messageId)."""
        payload: dict = {
            "sender": {
                "email": self.settings.mail_from_email,
                "name": self.settings.mail_from_name,
            },
            "to": [{"email": to, "name": to_name or to}],
            "subject": subject,
            "htmlContent": html_content,
        }
        if text_content:
            payload["textContent"] = text_content

        try:
            response = self._http.post("/smtp/email", json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            raise ExternalServiceError("brevo", f"send failed: {exc}") from exc

        if response.status_code >= 400:
            raise ExternalServiceError(
                "brevo",
                f"API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        return response.json() if response.content else {}

    def send_event_confirmation(self, recipient: str, event_name: str, notion_url: str) -> dict:
        name = html.escape(event_name)
        body = (
            "  <h2>Event succesvol aangemaakt!</h2>\n"
            f"  <p>Je event <strong>{name}</strong> is toegevoegd aan de CIIIC agenda.</p>\n"
            f"{_button(notion_url)}\n"
            "  <p style=\"color: #666; font-size: 14px;\">\n"
            "    Je kunt het event bewerken via de link hierboven.\n  </p>"
        )
        text = (
            "Event succesvol aangemaakt!\n\n"
            f"Je event \"{event_name}\" is toegevoegd aan de CIIIC agenda.\n\n"
            f"Bekijk in Notion: {notion_url}\n\n"
            "Je kunt het event bewerken via de link hierboven.\n\n"
            f"{_FOOTER_TEXT}"
        )
        return self.send_email(
            recipient, f"✅ Event aangemaakt: {event_name}", _wrap_html(body), text
        )

    def send_newsletter_item_confirmation(
        self,
        recipient: str,
        title: str,
        notion_url: str,
        week_number: int,
        publication_date: str,
    ) -> dict:
        body = (
            "  <h2>Nieuwsbrief item succesvol aangemaakt!</h2>\n"
            f"  <p>Je item <strong>{html.escape(title)}</strong> is toegevoegd aan de content database.</p>\n"
            "  <ul style=\"color: #666;\">\n"
            f"    <li>Publicatiedatum: <strong>{publication_date}</strong></li>\n"
            f"    <li>Nieuwsbrief: <strong>Week {week_number}</strong></li>\n"
            "  </ul>\n"
            f"{_button(notion_url)}"
        )
        text = (
            "Nieuwsbrief item succesvol aangemaakt!\n\n"
            f"Je item \"{title}\" is toegevoegd aan de content database.\n\n"
            f"- Publicatiedatum: {publication_date}\n"
            f"- Nieuwsbrief: Week {week_number}\n\n"
            f"Bekijk in Notion: {notion_url}\n\n"
            f"{_FOOTER_TEXT}"
        )
        return self.send_email(
            recipient, f"✅ Nieuwsbrief item aangemaakt: {title}", _wrap_html(body), text
        )

    def send_error_notification(self, recipient: str, error_message: str) -> dict:
        body = (
            "  <h2>Er ging iets mis</h2>\n"
            "  <p>Je event kon niet automatisch worden aangemaakt.</p>\n"
            "  <p style=\"background: #f5f5f5; padding: 10px; border-radius: 4px; font-family: monospace;\">\n"
            f"    {html.escape(error_message)}\n  </p>\n"
            "  <p>Probeer het opnieuw of maak het event handmatig aan in Notion.</p>"
        )
        return self.send_email(
            recipient, "❌ Event kon niet worden aangemaakt", _wrap_html(body)
        )

    def test_connection(self) -> dict:
        """Fetch the Brevo account; used by the health check."""
        try:
            response = self._http.get("/account", headers=self._headers())
        except (ValueError, httpx.HTTPError) as exc:
            return {"success": False, "error": str(exc)}

        if response.status_code >= 400:
            return {"success": False, "error": f"API error ({response.status_code}): {response.text}"}

        account = response.json()
        plans = account.get("plan") or [{}]
        return {
            "success": True,
            "email": account.get("email"),
            "companyName": account.get("companyName"),
            "plan": plans[0].get("type", "unknown"),
        }
