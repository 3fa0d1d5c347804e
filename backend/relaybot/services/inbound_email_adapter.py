"""
Inbound email adapter service.

Normalizes provider-specific inbound webhook payloads into a single
provider-agnostic Envelope. Unlike a per-provider endpoint, the relay takes
every provider on one URL, so the payload shape is detected rather than
configured.

Detection is an ordered list of shape matchers. Each matcher pairs a
predicate over the payload keys with an extractor; the first predicate that
passes wins. The predicates overlap (a Postmark payload also has "From",
like Brevo), so the order of _MATCHERS is part of the contract:

  1. brevo     : Uuid / MessageId, or From + RawHtmlBody
  2. sendgrid  : from + text/html
  3. mailgun   : sender + body-plain/body-html
  4. postmark  : FromFull or From
  5. generic   : from or sender, body/text/content/html
  6. fallback  : always matches; serializes the whole payload as the body

Adding a new provider:
  1. Write a _is_<provider>(payload) predicate and an
     _extract_<provider>(payload) -> Envelope extractor.
  2. Insert a ShapeMatcher into _MATCHERS at the right priority.
"""

import json
import logging
import re
from typing import Any, Callable, NamedTuple, Optional

from relaybot.errors import NoBodyFound
from relaybot.models.inbound_email import Envelope

logger = logging.getLogger(__name__)

_ANGLE_ADDRESS = re.compile(r"<([^>]+)>")


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def extract_email(value: Any) -> str:
    """
    Return the bare address from a "Name <addr@host>" string.

    Strings without angle brackets are returned unchanged; anything that is
    not a non-empty string yields "".
    """
    if not value or not isinstance(value, str):
        return ""
    match = _ANGLE_ADDRESS.search(value)
    return match.group(1) if match else value


def strip_html(html: Any) -> str:
    """
    Convert an HTML body to plain text.

    Deliberately naive and ordered: line breaks and paragraph ends become
    newlines, every remaining tag is dropped, then the four entities the
    providers actually send are decoded. Tags go before entities so that
    "&lt;b&gt;" survives as literal text instead of being stripped.
    """
    if not html or not isinstance(html, str):
        return ""
    text = re.sub(r"<br\s*/?>", "\n", html, flags=re.IGNORECASE)
    text = re.sub(r"</p>", "\n\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = (
        text.replace("&nbsp;", " ")
        .replace("&amp;", "&")
        .replace("&lt;", "<")
        .replace("&gt;", ">")
    )
    return text.strip()


def _text(value: Any) -> Optional[str]:
    """Return value when it is a non-empty string, else None."""
    if isinstance(value, str) and value:
        return value
    return None


def _first_text(*candidates: Any) -> Optional[str]:
    """Return the first candidate that is a non-empty string."""
    for candidate in candidates:
        text = _text(candidate)
        if text is not None:
            return text
    return None


def _first_item(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


# ---------------------------------------------------------------------------
# Brevo inbound parsing
# ---------------------------------------------------------------------------

def _is_brevo(payload: dict) -> bool:
    return bool(
        payload.get("Uuid")
        or payload.get("MessageId")
        or (payload.get("From") and payload.get("RawHtmlBody"))
    )


def _extract_brevo(payload: dict) -> Envelope:
    """
    Brevo uses PascalCase keys. From is an object ({Name, Address}) and To a
    list of such objects, though older payloads send plain strings.
    """
    sender = payload.get("From")
    from_email = _first_text(
        _get(sender, "Address"),
        extract_email(sender),
        extract_email(payload.get("ReplyTo")),
    )

    recipients = payload.get("To")
    first_recipient = _first_item(recipients)
    to = _first_text(
        _get(first_recipient, "Address"),
        first_recipient,
        recipients,
    )

    body = _first_text(
        payload.get("RawTextBody"),
        payload.get("ExtractedMarkdownMessage"),
    ) or strip_html(payload.get("RawHtmlBody"))

    return Envelope(
        from_email=from_email or "",
        to=extract_email(to),
        subject=_first_text(payload.get("Subject")) or "",
        body=body,
    )


# ---------------------------------------------------------------------------
# SendGrid inbound parse
# ---------------------------------------------------------------------------

def _is_sendgrid(payload: dict) -> bool:
    return bool(payload.get("from") and (payload.get("text") or payload.get("html")))


def _extract_sendgrid(payload: dict) -> Envelope:
    envelope_to = _first_item(_get(payload.get("envelope"), "to"))
    to = _first_text(payload.get("to"), envelope_to)

    body = _first_text(payload.get("text")) or strip_html(payload.get("html"))

    return Envelope(
        from_email=extract_email(payload.get("from")),
        to=extract_email(to),
        subject=_first_text(payload.get("subject")) or "",
        body=body,
    )


# ---------------------------------------------------------------------------
# Mailgun
# ---------------------------------------------------------------------------

def _is_mailgun(payload: dict) -> bool:
    return bool(
        payload.get("sender")
        and (payload.get("body-plain") or payload.get("body-html"))
    )


def _extract_mailgun(payload: dict) -> Envelope:
    body = _first_text(payload.get("body-plain")) or strip_html(payload.get("body-html"))

    return Envelope(
        from_email=extract_email(payload.get("sender")),
        to=extract_email(payload.get("recipient")),
        subject=_first_text(payload.get("subject")) or "",
        body=body,
    )


# ---------------------------------------------------------------------------
# Postmark
# ---------------------------------------------------------------------------

def _is_postmark(payload: dict) -> bool:
    return bool(payload.get("FromFull") or payload.get("From"))


def _extract_postmark(payload: dict) -> Envelope:
    """
    Postmark sends both a flat From/To string and FromFull/ToFull objects;
    the structured variants are preferred.
    """
    from_email = _first_text(
        _get(payload.get("FromFull"), "Email"),
        payload.get("From"),
    )
    to = _first_text(
        _get(_first_item(payload.get("ToFull")), "Email"),
        payload.get("To"),
    )

    body = _first_text(payload.get("TextBody")) or strip_html(payload.get("HtmlBody"))

    return Envelope(
        from_email=extract_email(from_email),
        to=extract_email(to),
        subject=_first_text(payload.get("Subject")) or "",
        body=body,
    )


# ---------------------------------------------------------------------------
# Generic JSON
# ---------------------------------------------------------------------------

def _is_generic(payload: dict) -> bool:
    return bool(payload.get("from") or payload.get("sender"))


def _extract_generic(payload: dict) -> Envelope:
    body = _first_text(
        payload.get("body"),
        payload.get("text"),
        payload.get("content"),
    ) or strip_html(payload.get("html"))

    return Envelope(
        from_email=extract_email(_first_text(payload.get("from"), payload.get("sender"))),
        to=extract_email(_first_text(payload.get("to"), payload.get("recipient"))),
        subject=_first_text(payload.get("subject")) or "",
        body=body,
    )


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------

def _extract_fallback(payload: dict) -> Envelope:
    """
    Best effort for payloads no matcher recognised. The whole payload is
    serialized as the body when no text field exists, so any non-empty
    payload still yields something for the AI extraction to read.
    """
    logger.info(
        f"No payload shape matched, using fallback. Sample: {json.dumps(payload, default=str)[:500]}"
    )
    body = _first_text(
        payload.get("body"),
        payload.get("text"),
        payload.get("content"),
        payload.get("message"),
    )
    if body is None and payload:
        body = json.dumps(payload, default=str)

    return Envelope(
        from_email=extract_email(
            _first_text(payload.get("email"), payload.get("from_email"))
        ) or "unknown",
        to=extract_email(_first_text(payload.get("to"), payload.get("recipient"))),
        subject=_first_text(payload.get("subject")) or "",
        body=body or "",
    )


# ---------------------------------------------------------------------------
# Registry and dispatcher
# ---------------------------------------------------------------------------

class ShapeMatcher(NamedTuple):
    name: str
    matches: Callable[[dict], bool]
    extract: Callable[[dict], Envelope]


_MATCHERS: list[ShapeMatcher] = [
    ShapeMatcher("brevo", _is_brevo, _extract_brevo),
    ShapeMatcher("sendgrid", _is_sendgrid, _extract_sendgrid),
    ShapeMatcher("mailgun", _is_mailgun, _extract_mailgun),
    ShapeMatcher("postmark", _is_postmark, _extract_postmark),
    ShapeMatcher("generic", _is_generic, _extract_generic),
    ShapeMatcher("fallback", lambda payload: True, _extract_fallback),
]


def detect_shape(payload: dict) -> ShapeMatcher:
    """Return the first matcher that recognises payload."""
    for matcher in _MATCHERS:
        if matcher.matches(payload):
            return matcher
    # The fallback always matches; this is unreachable unless _MATCHERS is edited.
    raise LookupError("no payload matcher registered")


def normalize(payload: dict, headers: Optional[dict] = None) -> Envelope:
    """
    Convert an inbound webhook payload to an Envelope.

    headers are accepted for providers that put metadata there, but no
    current matcher needs them.

    Raises NoBodyFound when the winning extractor found no text body.
    """
    if not isinstance(payload, dict):
        raise NoBodyFound()

    logger.info(f"Parsing email, keys: {', '.join(payload.keys())}")
    if headers:
        logger.debug(f"Webhook headers: {', '.join(headers.keys())}")

    matcher = detect_shape(payload)
    envelope = matcher.extract(payload)
    logger.info(f"Detected {matcher.name} payload, from={envelope.from_email!r} to={envelope.to!r}")

    if not envelope.body:
        raise NoBodyFound()
    return envelope
