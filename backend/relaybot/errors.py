"""
Error taxonomy for the relay.

Only two tiers exist: primary-path errors abort the request, everything that
happens after the record-store write is best-effort and is logged instead of
raised.

  NoBodyFound                : normalization found no text body at all (400)
  ExtractionValidationError  : AI extraction is missing a required field (500)
  ExternalServiceError       : a downstream collaborator failed (500 on the
                               primary path, swallowed on side channels)
"""

from typing import Optional


class RelaybotError(Exception):
    """Base class for all relay errors."""


class NoBodyFound(RelaybotError):
    """The inbound payload carried no extractable text body."""

    def __init__(self, message: str = "No email body found"):
        super().__init__(message)


class ExtractionValidationError(RelaybotError):
    """The AI extraction result lacks a field the pipeline requires."""

    def __init__(self, message: str, missing_fields: Optional[list[str]] = None):
        super().__init__(message)
        self.missing_fields = missing_fields or []


class ExternalServiceError(RelaybotError):
    """
    A downstream collaborator (record store, AI extraction, mail provider,
    notification webhook) signalled failure.
    """

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code
