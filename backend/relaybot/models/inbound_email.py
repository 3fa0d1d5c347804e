"""
Provider-agnostic inbound email model.

Every provider payload is reduced to an Envelope by the adapter layer before
routing. Only the adapter knows about Brevo/SendGrid/Mailgun/Postmark field
names; the router and pipelines work exclusively with this model.
"""

from pydantic import BaseModel, Field


class Envelope(BaseModel):
    """
    Normalized inbound email.

    from_email and to are bare addresses (no display name). body is plain
    text with any HTML already stripped. to is empty when the provider gave
    no recipient.
    """

    model_config = {"populate_by_name": True}

    from_email: str = Field(alias="from")
    to: str = ""
    subject: str = ""
    body: str
