"""
Pipeline orchestration tests.

Tests mock ALL collaborators (Notion, Brevo, notification webhook) and stub
the AI extraction. No real API calls.

Coverage:
  - Event pipeline: date composition, record creation, validation failure
  - Newsletter pipeline: publication week, container linking, title defaults
  - Inbox pipeline: no confirmation mail
  - Side effects after the record exists never fail the pipeline
  - friendly_name / newsletter_description helpers
"""

from datetime import date, datetime, timezone
from unittest.mock import Mock

import pytest

from relaybot.config import Settings
from relaybot.errors import ExternalServiceError, ExtractionValidationError
from relaybot.models.extraction import EventFields, InboxItemFields, NewsletterItemFields
from relaybot.models.inbound_email import Envelope
from relaybot.models.records import CreatedPage, DateRange
from relaybot.services.pipelines import (
    EVENT_VALIDATION_ERROR,
    Collaborators,
    friendly_name,
    newsletter_description,
    run_pipeline,
)
from relaybot.services.routing import PipelineKind

PAGE = CreatedPage(id="page-1", url="https://notion.so/page-1")

# Saturday 15 March 2025, 13:00 in Amsterdam
NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


def _clients(fields) -> Collaborators:
    store = Mock()
    store.create_event.return_value = PAGE
    store.create_content_item.return_value = PAGE
    store.create_inbox_item.return_value = PAGE
    store.find_content_by_title.return_value = None
    return Collaborators(
        settings=Settings(),
        store=store,
        mailer=Mock(),
        notifier=Mock(),
        extract=Mock(return_value=fields),
    )


def _envelope(from_email="a@x.com", to="events@bot.ciiic.nl", subject="Meetup", body="Join us"):
    return Envelope(from_email=from_email, to=to, subject=subject, body=body)


# ---------------------------------------------------------------------------
# Event pipeline
# ---------------------------------------------------------------------------

class TestEventPipeline:

    def test_creates_event_with_composed_date(self):
        fields = EventFields(event_name="Meetup", event_date="2025-03-15", event_time="18:00")
        clients = _clients(fields)

        result = run_pipeline(PipelineKind.EVENT, _envelope(), clients, NOW)

        clients.extract.assert_called_once_with(
            PipelineKind.EVENT, "Meetup", "Join us", "a@x.com", clients.settings
        )
        clients.store.create_event.assert_called_once_with(
            fields, DateRange(start="2025-03-15T18:00:00+01:00")
        )
        assert result.kind == PipelineKind.EVENT
        assert result.title == "Meetup"
        assert result.record_url == "https://notion.so/page-1"
        assert result.parsed_data["eventName"] == "Meetup"

    def test_notifies_and_confirms(self):
        fields = EventFields(event_name="Meetup", event_date="2025-03-15")
        clients = _clients(fields)

        run_pipeline(PipelineKind.EVENT, _envelope(), clients, NOW)

        clients.notifier.notify.assert_called_once_with(
            "event",
            "Meetup",
            "A heeft een event ingediend: Meetup op 2025-03-15",
            "https://notion.so/page-1",
        )
        clients.mailer.send_event_confirmation.assert_called_once_with(
            "a@x.com", "Meetup", "https://notion.so/page-1"
        )

    def test_extracted_sender_name_wins(self):
        fields = EventFields(event_name="Meetup", event_date="2025-03-15", sender_name="Jaap")
        clients = _clients(fields)

        run_pipeline(PipelineKind.EVENT, _envelope(), clients, NOW)

        description = clients.notifier.notify.call_args[0][2]
        assert description.startswith("Jaap heeft een event ingediend")

    def test_missing_date_raises_and_sends_error_mail(self):
        clients = _clients(EventFields(event_name="Meetup"))

        with pytest.raises(ExtractionValidationError) as exc_info:
            run_pipeline(PipelineKind.EVENT, _envelope(), clients, NOW)

        assert str(exc_info.value) == EVENT_VALIDATION_ERROR
        assert exc_info.value.missing_fields == ["event_date"]
        clients.mailer.send_error_notification.assert_called_once_with(
            "a@x.com", EVENT_VALIDATION_ERROR
        )
        clients.store.create_event.assert_not_called()
        clients.notifier.notify.assert_not_called()

    def test_missing_name_and_date_for_unknown_sender(self):
        clients = _clients(EventFields())

        with pytest.raises(ExtractionValidationError) as exc_info:
            run_pipeline(PipelineKind.EVENT, _envelope(from_email="unknown"), clients, NOW)

        assert exc_info.value.missing_fields == ["event_name", "event_date"]
        clients.mailer.send_error_notification.assert_not_called()

    def test_error_mail_failure_still_raises_validation_error(self):
        clients = _clients(EventFields(event_name="Meetup"))
        clients.mailer.send_error_notification.side_effect = ExternalServiceError("brevo", "down")

        with pytest.raises(ExtractionValidationError):
            run_pipeline(PipelineKind.EVENT, _envelope(), clients, NOW)

    def test_store_failure_propagates(self):
        clients = _clients(EventFields(event_name="Meetup", event_date="2025-03-15"))
        clients.store.create_event.side_effect = ExternalServiceError("notion", "boom", 500)

        with pytest.raises(ExternalServiceError):
            run_pipeline(PipelineKind.EVENT, _envelope(), clients, NOW)

        clients.mailer.send_event_confirmation.assert_not_called()

    def test_side_effect_failures_are_swallowed(self):
        clients = _clients(EventFields(event_name="Meetup", event_date="2025-03-15"))
        clients.notifier.notify.side_effect = RuntimeError("webhook down")
        clients.mailer.send_event_confirmation.side_effect = ExternalServiceError("brevo", "down")

        result = run_pipeline(PipelineKind.EVENT, _envelope(), clients, NOW)

        assert result.record_url == "https://notion.so/page-1"

    def test_test_sender_gets_no_confirmation(self):
        clients = _clients(EventFields(event_name="Meetup", event_date="2025-03-15"))

        run_pipeline(PipelineKind.EVENT, _envelope(from_email="test@example.com"), clients, NOW)

        clients.mailer.send_event_confirmation.assert_not_called()
        clients.notifier.notify.assert_called_once()


# ---------------------------------------------------------------------------
# Newsletter pipeline
# ---------------------------------------------------------------------------

class TestNewsletterPipeline:

    def test_links_to_weekly_container(self):
        fields = NewsletterItemFields(
            title="Tip", description="Een mooie tip", url="https://x.nl", topic_summary="AI"
        )
        clients = _clients(fields)
        clients.store.find_content_by_title.return_value = "container-1"

        result = run_pipeline(
            PipelineKind.NEWSLETTER_ITEM, _envelope(to="nieuwsbriefitem@bot.ciiic.nl"), clients, NOW
        )

        clients.store.find_content_by_title.assert_called_once_with("Nieuwsbrief week 12")
        title, description, url, week = clients.store.create_content_item.call_args[0]
        assert (title, description, url) == ("Tip", "Een mooie tip", "https://x.nl")
        assert week.linked_container_id == "container-1"

        assert result.kind == PipelineKind.NEWSLETTER_ITEM
        assert result.week_number == 12
        assert result.publication_date == date(2025, 3, 20)
        assert result.linked_container == "Nieuwsbrief week 12"

    def test_missing_container_still_creates_item(self):
        clients = _clients(NewsletterItemFields(title="Tip"))

        result = run_pipeline(PipelineKind.NEWSLETTER_ITEM, _envelope(), clients, NOW)

        clients.store.create_content_item.assert_called_once()
        assert result.linked_container is None
        assert result.week_number == 12

    def test_comment_and_confirmation(self):
        fields = NewsletterItemFields(title="Tip", original_sender_name="Piet", url="https://x.nl")
        clients = _clients(fields)

        run_pipeline(PipelineKind.NEWSLETTER_ITEM, _envelope(), clients, NOW)

        page_id, comment = clients.store.add_comment.call_args[0]
        assert page_id == "page-1"
        assert comment.splitlines() == [
            "📧 Toegevoegd via e-mail",
            "Afzender: a@x.com",
            "Onderwerp: Meetup",
            "Datum: 15-03-2025 13:00:00",
            "Originele afzender: Piet",
            "URL: https://x.nl",
        ]
        clients.mailer.send_newsletter_item_confirmation.assert_called_once_with(
            "a@x.com", "Tip", "https://notion.so/page-1", 12, "2025-03-20"
        )
        notification = clients.notifier.notify.call_args[0]
        assert notification[0] == "newsletter-item"
        assert notification[2] == "A heeft een tip doorgestuurd van Piet over Tip"

    def test_title_falls_back_to_subject(self):
        clients = _clients(NewsletterItemFields())

        result = run_pipeline(PipelineKind.NEWSLETTER_ITEM, _envelope(subject="Fwd: nieuws"), clients, NOW)

        assert result.title == "Fwd: nieuws"

    def test_title_falls_back_to_default(self):
        clients = _clients(NewsletterItemFields())

        result = run_pipeline(PipelineKind.NEWSLETTER_ITEM, _envelope(subject=""), clients, NOW)

        assert result.title == "Nieuwsbrief item"

    def test_comment_failure_is_swallowed(self):
        clients = _clients(NewsletterItemFields(title="Tip"))
        clients.store.add_comment.side_effect = ExternalServiceError("notion", "boom")

        result = run_pipeline(PipelineKind.NEWSLETTER_ITEM, _envelope(), clients, NOW)

        assert result.title == "Tip"
        clients.notifier.notify.assert_called_once()


# ---------------------------------------------------------------------------
# Inbox pipeline
# ---------------------------------------------------------------------------

class TestInboxPipeline:

    def test_creates_inbox_item_without_confirmation(self):
        fields = InboxItemFields(name="Vraag", description="Iemand heeft een vraag")
        clients = _clients(fields)

        result = run_pipeline(PipelineKind.INBOX, _envelope(to="hello@bot.ciiic.nl"), clients, NOW)

        clients.store.create_inbox_item.assert_called_once_with("Vraag", "Iemand heeft een vraag", None)
        clients.notifier.notify.assert_called_once_with(
            "inbox",
            "Vraag",
            "A heeft een e-mail gestuurd: Iemand heeft een vraag",
            "https://notion.so/page-1",
        )
        assert clients.mailer.method_calls == []
        assert result.kind == PipelineKind.INBOX
        assert result.title == "Vraag"

    def test_name_and_summary_fall_back_to_subject(self):
        clients = _clients(InboxItemFields())

        result = run_pipeline(PipelineKind.INBOX, _envelope(subject="Hallo"), clients, NOW)

        assert result.title == "Hallo"
        assert clients.notifier.notify.call_args[0][2] == "A heeft een e-mail gestuurd: Hallo"

    def test_defaults_without_subject(self):
        clients = _clients(InboxItemFields())

        result = run_pipeline(PipelineKind.INBOX, _envelope(subject=""), clients, NOW)

        assert result.title == "Inbox item"
        assert clients.notifier.notify.call_args[0][2].endswith("geen beschrijving")

    def test_comment_marks_received_mail(self):
        clients = _clients(InboxItemFields(name="Vraag"))

        run_pipeline(PipelineKind.INBOX, _envelope(), clients, NOW)

        comment = clients.store.add_comment.call_args[0][1]
        assert comment.startswith("📧 Ontvangen via e-mail\nAfzender: a@x.com")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestFriendlyName:

    @pytest.mark.parametrize(
        "email, expected",
        [
            ("isjah@ciiic.nl", "Isjah"),
            ("Jaap@CIIIC.nl", "Jaap"),
            ("piet.jansen@example.com", "Piet"),
            ("anna_de_vries@example.com", "Anna"),
            ("bob@example.com", "Bob"),
            ("", "Iemand"),
            ("unknown", "Iemand"),
        ],
    )
    def test_friendly_name(self, email, expected):
        assert friendly_name(email) == expected


class TestNewsletterDescription:

    def test_forwarded_tip(self):
        fields = NewsletterItemFields(
            forwarder_name="Isjah", original_sender_name="Piet", topic_summary="subsidieoproep AI"
        )
        assert (
            newsletter_description("isjah@ciiic.nl", fields)
            == "Isjah heeft een tip doorgestuurd van Piet over subsidieoproep AI"
        )

    def test_direct_submission(self):
        fields = NewsletterItemFields(topic_summary="workshop aankondiging")
        assert (
            newsletter_description("jaap@ciiic.nl", fields)
            == "Jaap heeft een nieuwsbrief item ingediend over workshop aankondiging"
        )
