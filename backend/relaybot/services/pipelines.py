"""
Pipeline orchestration.

One function per PipelineKind, all following the same sequence:

  1. AI extraction of the pipeline's fields from subject + body
  2. validation (fatal only for events: name and date are required)
  3. record creation in Notion (events get a composed date range,
     newsletter items a publication week and container link)
  4. best-effort side effects: page comment, notification webhook,
     confirmation email

Steps 1-3 are the primary path; their errors propagate. Everything in step 4
runs after the record exists and is logged and swallowed on failure, so a
flaky mail provider never turns a created record into a 500.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from relaybot.config import Settings
from relaybot.errors import ExtractionValidationError
from relaybot.models.extraction import EventFields, InboxItemFields, NewsletterItemFields
from relaybot.models.inbound_email import Envelope
from relaybot.models.records import PipelineResult
from relaybot.services.date_range import compose_date_range
from relaybot.services.extractor import extract_fields
from relaybot.services.mailer import MailClient
from relaybot.services.notifier import Notifier
from relaybot.services.notion import NotionClient
from relaybot.services.routing import PipelineKind
from relaybot.services.time_math import format_date, to_amsterdam
from relaybot.services.week_linker import resolve_container

logger = logging.getLogger(__name__)

ORGANISATION_DOMAIN = "@ciiic.nl"
UNKNOWN_SENDER = "unknown"
TEST_SENDER = "test@example.com"

DEFAULT_NEWSLETTER_TITLE = "Nieuwsbrief item"
DEFAULT_INBOX_NAME = "Inbox item"
EVENT_VALIDATION_ERROR = "Could not extract event name or date from email"


@dataclass
class Collaborators:
    """External services a pipeline talks to, built once from Settings."""

    settings: Settings
    store: NotionClient
    mailer: MailClient
    notifier: Notifier
    extract: Callable[..., Any] = field(default=extract_fields)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Collaborators":
        return cls(
            settings=settings,
            store=NotionClient(settings),
            mailer=MailClient(settings),
            notifier=Notifier(settings),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def friendly_name(email: str) -> str:
    """
    Derive a display name from an address when the extraction found none.

    Organisation addresses are firstname@ciiic.nl; for anything else the
    first dot/underscore-separated word of the local part is used.
    """
    if not email or email == UNKNOWN_SENDER:
        return "Iemand"

    email_lower = email.lower()
    local_part = email_lower.split("@")[0]

    if ORGANISATION_DOMAIN in email_lower:
        return local_part[:1].upper() + local_part[1:]

    name = local_part.replace(".", " ").replace("_", " ").split(" ")[0]
    return name[:1].upper() + name[1:]


def _can_reply(sender: str) -> bool:
    return bool(sender) and sender != UNKNOWN_SENDER


def _should_confirm(sender: str) -> bool:
    return _can_reply(sender) and sender != TEST_SENDER


def _best_effort(description: str, action: Callable[..., Any], *args: Any) -> None:
    try:
        action(*args)
    except Exception as e:
        logger.warning(f"Failed to {description}: {e}")


def _received_comment(heading: str, envelope: Envelope, now: datetime, extra: list[str]) -> str:
    lines = [
        heading,
        f"Afzender: {envelope.from_email}",
        f"Onderwerp: {envelope.subject or '(geen onderwerp)'}",
        f"Datum: {to_amsterdam(now).strftime('%d-%m-%Y %H:%M:%S')}",
    ]
    lines.extend(line for line in extra if line)
    return "\n".join(lines)


def newsletter_description(sender: str, fields: NewsletterItemFields) -> str:
    """Dutch one-liner describing who submitted the newsletter item."""
    forwarder = fields.forwarder_name or friendly_name(sender)
    topic = fields.topic_summary or fields.title or "een nieuwsbrief item"
    if fields.original_sender_name:
        return f"{forwarder} heeft een tip doorgestuurd van {fields.original_sender_name} over {topic}"
    return f"{forwarder} heeft een nieuwsbrief item ingediend over {topic}"


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------

def process_event(envelope: Envelope, clients: Collaborators, now: datetime) -> PipelineResult:
    sender = envelope.from_email
    fields: EventFields = clients.extract(
        PipelineKind.EVENT, envelope.subject, envelope.body, sender, clients.settings
    )

    missing = fields.missing_required()
    if missing:
        if _can_reply(sender):
            _best_effort(
                "send error notification",
                clients.mailer.send_error_notification,
                sender,
                EVENT_VALIDATION_ERROR,
            )
        raise ExtractionValidationError(EVENT_VALIDATION_ERROR, missing)

    date_range = compose_date_range(
        fields.event_date, fields.event_time, fields.end_date, fields.end_time
    )
    page = clients.store.create_event(fields, date_range)
    logger.info(f"Created event page: {page.url}")

    sender_name = fields.sender_name or friendly_name(sender)
    description = f"{sender_name} heeft een event ingediend: {fields.event_name} op {fields.event_date}"
    _best_effort(
        "send notification", clients.notifier.notify,
        "event", fields.event_name, description, page.url,
    )

    if _should_confirm(sender):
        _best_effort(
            "send confirmation email", clients.mailer.send_event_confirmation,
            sender, fields.event_name, page.url,
        )

    return PipelineResult(
        kind=PipelineKind.EVENT,
        title=fields.event_name,
        record_url=page.url,
        parsed_data=fields.model_dump(by_alias=True),
    )


def process_newsletter_item(
    envelope: Envelope, clients: Collaborators, now: datetime
) -> PipelineResult:
    sender = envelope.from_email
    fields: NewsletterItemFields = clients.extract(
        PipelineKind.NEWSLETTER_ITEM, envelope.subject, envelope.body, sender, clients.settings
    )

    title = fields.title or envelope.subject or DEFAULT_NEWSLETTER_TITLE

    week = resolve_container(clients.store, to_amsterdam(now))
    page = clients.store.create_content_item(title, fields.description, fields.url, week)
    logger.info(f"Created newsletter item page: {page.url}")

    comment = _received_comment(
        "📧 Toegevoegd via e-mail",
        envelope,
        now,
        [
            f"Originele afzender: {fields.original_sender_name}" if fields.original_sender_name else "",
            f"URL: {fields.url}" if fields.url else "",
        ],
    )
    _best_effort("add comment", clients.store.add_comment, page.id, comment)

    _best_effort(
        "send notification", clients.notifier.notify,
        "newsletter-item", title, newsletter_description(sender, fields), page.url,
    )

    publication_date = format_date(week.publication_date)
    if _should_confirm(sender):
        _best_effort(
            "send confirmation email", clients.mailer.send_newsletter_item_confirmation,
            sender, title, page.url, week.week_number, publication_date,
        )

    return PipelineResult(
        kind=PipelineKind.NEWSLETTER_ITEM,
        title=title,
        record_url=page.url,
        parsed_data=fields.model_dump(by_alias=True),
        week_number=week.week_number,
        publication_date=week.publication_date,
        linked_container=week.container_title if week.linked_container_id else None,
    )


def process_inbox_item(envelope: Envelope, clients: Collaborators, now: datetime) -> PipelineResult:
    sender = envelope.from_email
    fields: InboxItemFields = clients.extract(
        PipelineKind.INBOX, envelope.subject, envelope.body, sender, clients.settings
    )

    name = fields.name or envelope.subject or DEFAULT_INBOX_NAME

    page = clients.store.create_inbox_item(name, fields.description, fields.url)
    logger.info(f"Created inbox page: {page.url}")

    comment = _received_comment(
        "📧 Ontvangen via e-mail",
        envelope,
        now,
        [f"URL: {fields.url}" if fields.url else ""],
    )
    _best_effort("add comment", clients.store.add_comment, page.id, comment)

    sender_name = fields.sender_name or friendly_name(sender)
    summary = fields.description or envelope.subject or "geen beschrijving"
    _best_effort(
        "send notification", clients.notifier.notify,
        "inbox", name, f"{sender_name} heeft een e-mail gestuurd: {summary}", page.url,
    )

    return PipelineResult(
        kind=PipelineKind.INBOX,
        title=name,
        record_url=page.url,
        parsed_data=fields.model_dump(by_alias=True),
    )


_PIPELINES: dict[PipelineKind, Callable[[Envelope, Collaborators, datetime], PipelineResult]] = {
    PipelineKind.EVENT: process_event,
    PipelineKind.NEWSLETTER_ITEM: process_newsletter_item,
    PipelineKind.INBOX: process_inbox_item,
}


def run_pipeline(
    kind: PipelineKind,
    envelope: Envelope,
    clients: Collaborators,
    now: Optional[datetime] = None,
) -> PipelineResult:
    """Run the pipeline for kind on envelope."""
    logger.info(f"Running {kind.value} pipeline for {envelope.from_email!r}")
    return _PIPELINES[kind](envelope, clients, now or datetime.now(timezone.utc))
