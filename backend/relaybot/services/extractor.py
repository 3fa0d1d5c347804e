"""
AI field extraction service.

Sends the email text to Claude with a pipeline-specific prompt and parses the
JSON answer into the matching pydantic model. Each pipeline has its own
prompt; the model is asked for camelCase keys, which the extraction models
accept as aliases.
"""

import json
import logging
from typing import Optional, Tuple, Type, TypeVar

import anthropic
from pydantic import BaseModel, ValidationError

from relaybot.config import Settings
from relaybot.errors import ExternalServiceError
from relaybot.models.extraction import EventFields, InboxItemFields, NewsletterItemFields
from relaybot.services.routing import PipelineKind

logger = logging.getLogger(__name__)

MAX_TOKENS = 2048
TEMPERATURE = 0.1

EVENT_PROMPT = """\
You are an assistant that extracts event information from emails.
Extract the following fields from the email content and return them as JSON:

- eventName: string (required) - The name/title of the event
- eventDate: string (required) - Start date in ISO 8601 format (YYYY-MM-DD)
- eventTime: string or null - Start time in HH:MM format (24h), or null if not specified
- endDate: string or null - End date in ISO 8601 format, or null if same as start or not specified
- endTime: string or null - End time in HH:MM format (24h), or null if not specified
- venue: string or null - Location/venue name, or null if not specified
- eventUrl: string or null - URL for more info or registration, or null if not specified
- beschrijving: string or null - A one-paragraph description in Dutch if possible, or null if not enough info
- publishToSite: boolean - Default to true. Only false if the email explicitly says the event is private/internal or must not be published
- senderName: string (required) - First name of the person who sent/forwarded this email (see the "Email from:" line, signatures, "From:" headers)

Important:
- Parse dates intelligently (e.g., "next Friday", "15 januari", "March 3rd 2025")
- If the year is not specified, assume the next occurrence of that date
- If the email is in Dutch, keep the description in Dutch
- The email may be messy with forwarding headers and signatures; extract what you can
- If uncertain about a field, set it to null rather than guessing

Return ONLY valid JSON, no markdown formatting or explanation."""

NEWSLETTER_ITEM_PROMPT = """\
You are an assistant that extracts newsletter item information from forwarded emails.
The user is forwarding content they want to include in a newsletter. Extract the following fields and return them as JSON:

- title: string (required) - A concise, catchy title for the newsletter item (max 100 characters)
- beschrijving: string (required) - A short newsletter-ready summary (1-3 sentences, in Dutch if the content is Dutch)
- url: string or null - The most relevant URL in the email (article, event page, registration link), or null
- forwarderName: string (required) - First name of the person who forwarded this email to the bot (see the "Email from:" line, signatures, "From:" headers)
- originalSenderName: string or null - For forwarded messages, the first name of the original sender ("From:", "Van:", "Begin forwarded message", signatures)
- topicSummary: string (required) - What the content is about, in Dutch, max 50 characters (e.g. "subsidieoproep AI", "workshop aankondiging")

Important:
- The email may be messy with forwarding headers and signatures; extract what you can
- If the email is in Dutch, keep the description in Dutch
- For names, prefer first names only

Return ONLY valid JSON, no markdown formatting or explanation."""

INBOX_ITEM_PROMPT = """\
You are an assistant that extracts key information from emails for an inbox/catch-all system.
Extract the following fields and return them as JSON:

- name: string (required) - A concise title for this item (max 100 characters)
- description: string (required) - A brief summary of the email (1-3 sentences, in Dutch if the content is Dutch)
- url: string or null - The main URL mentioned in the email, or null if none
- senderName: string (required) - First name of the person who sent this email (see the "Email from:" line, signatures, "From:" headers)

Important:
- Keep the name short but descriptive
- The email may be messy with headers and signatures; extract what you can

Return ONLY valid JSON, no markdown formatting or explanation."""

_PROMPTS: dict[PipelineKind, Tuple[str, Type[BaseModel]]] = {
    PipelineKind.EVENT: (EVENT_PROMPT, EventFields),
    PipelineKind.NEWSLETTER_ITEM: (NEWSLETTER_ITEM_PROMPT, NewsletterItemFields),
    PipelineKind.INBOX: (INBOX_ITEM_PROMPT, InboxItemFields),
}

FieldsT = TypeVar("FieldsT", bound=BaseModel)


def build_email_content(subject: str, body: str, sender: Optional[str] = None) -> str:
    """Combine sender, subject and body into the text the model reads."""
    content = f"Subject: {subject}\n\n{body}" if subject else body
    if sender:
        content = f"Email from: {sender}\n\n{content}"
    return content


def _response_text(response) -> str:
    # The first content block must be text; tool_use or an empty list is unusable
    blocks = response.content or []
    text = getattr(blocks[0], "text", None) if blocks else None
    if not isinstance(text, str):
        raise ExternalServiceError("anthropic", "Response contained no text content")
    return text


def _parse_json(raw_text: str) -> dict:
    # Handle markdown code fences despite the prompt asking for bare JSON
    json_text = raw_text.strip()
    if json_text.startswith("```"):
        lines = json_text.split("\n")
        lines = [line for line in lines if not line.strip().startswith("```")]
        json_text = "\n".join(lines)

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as exc:
        raise ExternalServiceError(
            "anthropic", f"Failed to parse response as JSON: {raw_text[:200]}"
        ) from exc
    if not isinstance(data, dict):
        raise ExternalServiceError("anthropic", "Expected a JSON object in the response")
    return data


def extract_with_claude(
    system_prompt: str,
    content: str,
    model_cls: Type[FieldsT],
    settings: Settings,
) -> Tuple[FieldsT, dict]:
    """
    Send content to Claude under system_prompt and parse the answer.

    Returns:
        (parsed fields, token_usage)
    """
    if not settings.anthropic_api_key:
        raise ValueError("ANTHROPIC_API_KEY is required for AI extraction")

    client = anthropic.Anthropic(
        api_key=settings.anthropic_api_key,
        timeout=settings.http_timeout,
    )

    try:
        response = client.messages.create(
            model=settings.anthropic_model,
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            system=system_prompt,
            messages=[{"role": "user", "content": content}],
        )
    except anthropic.APIError as exc:
        raise ExternalServiceError("anthropic", str(exc)) from exc

    data = _parse_json(_response_text(response))

    try:
        fields = model_cls.model_validate(data)
    except ValidationError as exc:
        raise ExternalServiceError("anthropic", f"Unexpected extraction shape: {exc}") from exc

    token_usage = {
        "input_tokens": response.usage.input_tokens,
        "output_tokens": response.usage.output_tokens,
        "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
    }
    return fields, token_usage


def extract_fields(
    kind: PipelineKind,
    subject: str,
    body: str,
    sender: Optional[str],
    settings: Settings,
) -> BaseModel:
    """Run the extraction for kind and return its fields model."""
    system_prompt, model_cls = _PROMPTS[kind]
    content = build_email_content(subject, body, sender)

    logger.info(f"Parsing {kind.value} with {settings.anthropic_model}")
    fields, token_usage = extract_with_claude(system_prompt, content, model_cls, settings)
    logger.info(
        f"Extraction used {token_usage['total_tokens']} tokens: "
        f"{fields.model_dump_json(exclude_none=True)}"
    )
    return fields
