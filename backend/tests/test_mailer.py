"""
Brevo mail client tests, served by httpx.MockTransport.
"""

import json

import httpx
import pytest

from relaybot.config import Settings
from relaybot.errors import ExternalServiceError
from relaybot.services.mailer import BREVO_API_URL, MailClient

SETTINGS = Settings(brevo_api_key="xkeysib-test")


def _client(handler, settings: Settings = SETTINGS) -> MailClient:
    http = httpx.Client(base_url=BREVO_API_URL, transport=httpx.MockTransport(handler))
    return MailClient(settings, http=http)


@pytest.fixture
def sent():
    return []


@pytest.fixture
def mailer(sent):
    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(201, json={"messageId": "<msg-1@smtp-relay>"})

    return _client(handler)


class TestSendEmail:

    def test_posts_to_smtp_endpoint(self, mailer, sent):
        result = mailer.send_email("a@x.com", "Hallo", "<p>Hoi</p>", "Hoi")

        assert result == {"messageId": "<msg-1@smtp-relay>"}
        request = sent[0]
        assert request.url.path == "/v3/smtp/email"
        assert request.headers["api-key"] == "xkeysib-test"

        body = json.loads(request.content)
        assert body["sender"] == {"email": "noreply@ciiic.nl", "name": "CIIIC Event Bot"}
        assert body["to"] == [{"email": "a@x.com", "name": "a@x.com"}]
        assert body["subject"] == "Hallo"
        assert body["textContent"] == "Hoi"

    def test_text_content_is_optional(self, mailer, sent):
        mailer.send_email("a@x.com", "Hallo", "<p>Hoi</p>")
        assert "textContent" not in json.loads(sent[0].content)

    def test_api_error_raises(self):
        client = _client(lambda request: httpx.Response(401, json={"message": "Key not found"}))

        with pytest.raises(ExternalServiceError) as exc_info:
            client.send_email("a@x.com", "Hallo", "<p>Hoi</p>")

        assert exc_info.value.service == "brevo"
        assert exc_info.value.status_code == 401

    def test_missing_api_key_raises(self):
        client = _client(lambda request: httpx.Response(201), Settings())

        with pytest.raises(ValueError, match="BREVO_API_KEY"):
            client.send_email("a@x.com", "Hallo", "<p>Hoi</p>")


class TestTemplates:

    def test_event_confirmation(self, mailer, sent):
        mailer.send_event_confirmation("a@x.com", "AI <Meetup>", "https://notion.so/p")

        body = json.loads(sent[0].content)
        assert body["subject"] == "✅ Event aangemaakt: AI <Meetup>"
        assert "AI &lt;Meetup&gt;" in body["htmlContent"]
        assert "https://notion.so/p" in body["htmlContent"]
        assert "Bekijk in Notion: https://notion.so/p" in body["textContent"]

    def test_newsletter_item_confirmation(self, mailer, sent):
        mailer.send_newsletter_item_confirmation(
            "a@x.com", "Tip", "https://notion.so/p", 12, "2025-03-20"
        )

        body = json.loads(sent[0].content)
        assert body["subject"] == "✅ Nieuwsbrief item aangemaakt: Tip"
        assert "Week 12" in body["textContent"]
        assert "2025-03-20" in body["textContent"]

    def test_error_notification(self, mailer, sent):
        mailer.send_error_notification("a@x.com", "Could not extract event name or date from email")

        body = json.loads(sent[0].content)
        assert body["subject"] == "❌ Event kon niet worden aangemaakt"
        assert "Could not extract event name or date from email" in body["htmlContent"]


class TestConnection:

    def test_success(self):
        client = _client(
            lambda request: httpx.Response(
                200,
                json={"email": "ops@ciiic.nl", "companyName": "CIIIC", "plan": [{"type": "free"}]},
            )
        )

        assert client.test_connection() == {
            "success": True,
            "email": "ops@ciiic.nl",
            "companyName": "CIIIC",
            "plan": "free",
        }

    def test_missing_key_is_reported(self):
        result = _client(lambda request: httpx.Response(200, json={}), Settings()).test_connection()

        assert result["success"] is False
        assert "BREVO_API_KEY" in result["error"]
