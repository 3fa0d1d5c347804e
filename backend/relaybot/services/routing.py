"""
Recipient-based routing.

Every inbound email lands on the same webhook; the local part of the
recipient address decides which pipeline handles it:

  nieuwsbriefitem@bot.ciiic.nl  → newsletter item
  events@bot.ciiic.nl           → event
  anything else                 → inbox (catch-all)

Matching is substring containment on the lower-cased recipient, checked in
the order of ROUTING_RULES. The first marker found wins, so an address that
contains two markers always resolves to the one listed first.
"""

import logging
from enum import Enum

from relaybot.models.inbound_email import Envelope

logger = logging.getLogger(__name__)


class PipelineKind(str, Enum):
    EVENT = "event"
    NEWSLETTER_ITEM = "newsletter_item"
    INBOX = "inbox"


# Priority order matters: earlier rules shadow later ones.
ROUTING_RULES: list[tuple[str, PipelineKind]] = [
    ("nieuwsbriefitem@", PipelineKind.NEWSLETTER_ITEM),
    ("events@", PipelineKind.EVENT),
]

CATCH_ALL = PipelineKind.INBOX


def route_recipient(recipient: str) -> PipelineKind:
    """Return the pipeline for a bare recipient address."""
    address = (recipient or "").lower()
    for marker, kind in ROUTING_RULES:
        if marker in address:
            return kind
    return CATCH_ALL


def route(envelope: Envelope) -> PipelineKind:
    """Return the pipeline that should handle envelope."""
    kind = route_recipient(envelope.to)
    logger.info(f"Routing recipient {envelope.to!r} to {kind.value} pipeline")
    return kind
