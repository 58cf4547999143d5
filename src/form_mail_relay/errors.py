# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Error taxonomy shared by the relay components.

Lower layers raise these exceptions; :class:`form_mail_relay.relay.FormMailRelay`
and :class:`form_mail_relay.dispatch.DispatchEngine` turn them into a
:class:`form_mail_relay.models.DispatchOutcome` so callers never have to
inspect error text to know what happened.

- :class:`ValidationError`: missing or malformed field (HTTP 400, never retried).
- :class:`UploadError`: wrong type, oversized or corrupt attachment (HTTP 400).
- :class:`SenderRejected`: the transport refused the sender address; triggers
  the single fallback attempt.
- :class:`DeliveryError`: any other transport failure (HTTP 500).
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class carrying a short message and optional details."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ValidationError(RelayError):
    """Raised when a submission field is missing or malformed."""

    def __init__(self, message: str, details: str | None = None, fields: tuple[str, ...] = ()):
        super().__init__(message, details)
        self.fields = fields


class UploadError(RelayError):
    """Raised when an uploaded attachment is refused.

    ``kind`` is ``"limit"`` when the upload exceeded the size ceiling while
    being received, and ``"type"`` when the file failed the type filter or
    could not be read.
    """

    def __init__(self, message: str, details: str | None = None, kind: str = "type"):
        super().__init__(message, details)
        self.kind = kind


class TransportError(RelayError):
    """Base class for failures reported by the mail transport."""

    def __init__(self, message: str, details: str | None = None, smtp_code: int | None = None):
        super().__init__(message, details)
        self.smtp_code = smtp_code


class SenderRejected(TransportError):
    """The transport refused the envelope/header sender address."""


class DeliveryError(TransportError):
    """Any transport failure that is not a sender rejection."""
