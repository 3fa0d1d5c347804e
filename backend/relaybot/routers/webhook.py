"""
Inbound email webhook router.

All inbound mail for *@bot.ciiic.nl arrives on one endpoint, whatever the
parsing provider. The payload is normalized by the inbound_email_adapter
service, routed by recipient, and handed to the matching pipeline:

  events@bot.ciiic.nl           → calendar event          (type: event)
  nieuwsbriefitem@bot.ciiic.nl  → newsletter item         (type: newsletter_item)
  *@bot.ciiic.nl                → inbox catch-all         (type: inbox)

Endpoints:
  POST /email  : provider webhook
  POST /test   : raw content, routed by the "to" field; skips shape detection

Both endpoints accept a JSON object or a form post
(application/x-www-form-urlencoded or multipart/form-data); Mailgun and
SendGrid inbound parse post forms. File parts of a multipart post are ignored.

Status codes:
  200  record created ({success: true, type, ...})
  400  no email body found (also for bodies that are not a JSON object or form)
  500  anything else, including an event without name or date
"""

import json
import logging
from functools import lru_cache
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from relaybot.config import Settings, get_settings
from relaybot.errors import NoBodyFound
from relaybot.models.inbound_email import Envelope
from relaybot.models.records import PipelineResult
from relaybot.services.inbound_email_adapter import normalize
from relaybot.services.pipelines import TEST_SENDER, Collaborators, run_pipeline
from relaybot.services.routing import PipelineKind, route, route_recipient

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

@lru_cache
def _collaborators_for(settings: Settings) -> Collaborators:
    return Collaborators.from_settings(settings)


def get_collaborators(settings: Settings = Depends(get_settings)) -> Collaborators:
    """Collaborator clients, shared across requests for the same Settings."""
    return _collaborators_for(settings)


# ---------------------------------------------------------------------------
# Request body
# ---------------------------------------------------------------------------

async def read_payload(request: Request) -> Any:
    """
    Decode the request body into the payload the adapter sees.

    Form posts become a dict of their text fields. Anything else is parsed
    as JSON; an undecodable body yields None, which the callers treat as a
    missing email body.
    """
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Could not decode request body as JSON ({content_type or 'no content-type'}): {e}")
        return None


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------

def _success_body(result: PipelineResult, include_parsed: bool = False) -> dict:
    body: dict = {"success": True, "type": result.kind.value}

    if result.kind == PipelineKind.EVENT:
        body["event"] = result.title
    elif result.kind == PipelineKind.NEWSLETTER_ITEM:
        body["title"] = result.title
    else:
        body["name"] = result.title

    body["notionUrl"] = result.record_url

    if result.kind == PipelineKind.NEWSLETTER_ITEM:
        body["weekNumber"] = result.week_number
        body["publicatieDatum"] = (
            result.publication_date.isoformat() if result.publication_date else None
        )
        body["linkedNewsletter"] = result.linked_container

    if include_parsed:
        body["parsedData"] = result.parsed_data
    return body


def _failure(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/email")
async def receive_email(
    request: Request,
    clients: Collaborators = Depends(get_collaborators),
):
    """
    Unified inbound email webhook.

    Accepts any JSON object or form post; the provider is detected from the
    payload keys. Headers are passed along to the normalizer but are not
    required. The pipeline does blocking I/O and runs in the threadpool.
    """
    logger.info("Received webhook request")

    payload = await read_payload(request)
    try:
        envelope = normalize(payload, dict(request.headers))
    except NoBodyFound as exc:
        logger.error(f"No email body found in request: {exc}")
        return JSONResponse(status_code=400, content={"error": "No email body found"})

    logger.info(
        f"Email from: {envelope.from_email}, to: {envelope.to}, subject: {envelope.subject}"
    )

    try:
        result = await run_in_threadpool(run_pipeline, route(envelope), envelope, clients)
    except Exception as exc:
        logger.error(f"Webhook error: {exc}", exc_info=True)
        return _failure(exc)

    logger.info(f"Created {result.kind.value}: {result.title}")
    return _success_body(result)


@router.post("/test")
async def receive_test_email(
    request: Request,
    clients: Collaborators = Depends(get_collaborators),
):
    """
    Test endpoint taking raw content instead of a provider payload.

    Body: {from?, to?, subject?, body | email | content}, as JSON or form.
    Routing uses "to"; without it the item lands in the inbox. The response
    includes the parsed extraction data.
    """
    payload = await read_payload(request)
    if not isinstance(payload, dict):
        payload = {}

    content: Optional[str] = payload.get("body") or payload.get("email") or payload.get("content")
    if not content:
        return JSONResponse(
            status_code=400,
            content={"error": "Please provide email content in body, email, or content field"},
        )

    try:
        envelope = Envelope(
            from_email=payload.get("from") or TEST_SENDER,
            to=payload.get("to") or "",
            subject=payload.get("subject") or "",
            body=content,
        )
        result = await run_in_threadpool(
            run_pipeline, route_recipient(envelope.to), envelope, clients
        )
    except Exception as exc:
        logger.error(f"Test webhook error: {exc}", exc_info=True)
        return _failure(exc)

    return _success_body(result, include_parsed=True)
