# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic models for the form mail relay.

Models:
    - ContactSubmission: validated contact form
    - ApplicationSubmission: validated career application form
    - Attachment: in-memory attachment descriptor
    - ComposedMessage: immutable message envelope ready for the transport
    - DispatchOutcome: tagged result of one relay request
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
PHONE_PATTERN = re.compile(r"^\+?\d{10,15}$")

NonEmptyStr = Annotated[str, Field(min_length=1)]


class FormKind(str, Enum):
    """Kinds of submission handled by the relay."""

    CONTACT = "contact"
    APPLICATION = "application"
    TEST = "test"


class ContactSubmission(BaseModel):
    """Contact form after trimming and validation."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: NonEmptyStr
    email: NonEmptyStr
    subject: NonEmptyStr
    message: NonEmptyStr
    recipient: NonEmptyStr


class ApplicationSubmission(BaseModel):
    """Career application form after trimming and validation.

    The resume is carried separately as an :class:`Attachment`.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    job_type: NonEmptyStr
    position: NonEmptyStr
    full_name: NonEmptyStr
    phone: NonEmptyStr
    email: NonEmptyStr
    qualification: NonEmptyStr
    degree: NonEmptyStr
    experience: NonEmptyStr
    about: NonEmptyStr
    recipient: NonEmptyStr


class Attachment(BaseModel):
    """Attachment held in memory for the lifetime of one request."""

    model_config = ConfigDict(frozen=True)

    filename: NonEmptyStr
    content: bytes
    mime_type: NonEmptyStr = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


class ComposedMessage(BaseModel):
    """Message envelope built once per request and never mutated.

    Attributes:
        from_address: Address used both as envelope sender and in ``From``.
        from_name: Optional display name rendered in ``From``.
        reply_to: Address replies should go to (the requester).
        to_address: Recipient address.
        subject: Subject line.
        text_body: Plain text part.
        html_body: HTML alternative part.
        attachments: Ordered attachments.
    """

    model_config = ConfigDict(frozen=True)

    from_address: NonEmptyStr
    from_name: str | None = None
    reply_to: str | None = None
    to_address: NonEmptyStr
    subject: str
    text_body: str
    html_body: str | None = None
    attachments: tuple[Attachment, ...] = ()

    @model_validator(mode="after")
    def _check_addresses(self) -> "ComposedMessage":
        if not self.to_address.strip():
            raise ValueError("to_address must not be empty")
        if not EMAIL_PATTERN.search(self.from_address):
            raise ValueError(f"from_address is not a valid address: {self.from_address!r}")
        return self

    @property
    def formatted_from(self) -> str:
        """``From`` header value, e.g. ``"Ada" <ada@example.com>``."""
        if self.from_name:
            name = self.from_name.replace('"', "'")
            return f'"{name}" <{self.from_address}>'
        return self.from_address

    def with_sender(self, address: str) -> "ComposedMessage":
        """Return a copy sent from ``address``; every other field is kept."""
        return self.model_copy(update={"from_address": address})


class OutcomeKind(str, Enum):
    """Terminal states of a relay request."""

    SENT = "sent"
    SENT_WITH_FALLBACK = "sent_with_fallback"
    VALIDATION_FAILED = "validation_failed"
    UPLOAD_FAILED = "upload_failed"
    DELIVERY_FAILED = "delivery_failed"


class DispatchOutcome(BaseModel):
    """Result of a relay request.

    ``reason`` is a short, caller-facing summary; ``details`` carries the
    validation detail or the transport error text. ``upload_kind`` is set for
    :attr:`OutcomeKind.UPLOAD_FAILED` (``"limit"`` or ``"type"``).
    """

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    reason: str | None = None
    details: str | None = None
    smtp_code: int | None = None
    upload_kind: str | None = None
    sender: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind in (OutcomeKind.SENT, OutcomeKind.SENT_WITH_FALLBACK)

    @property
    def used_fallback(self) -> bool:
        return self.kind is OutcomeKind.SENT_WITH_FALLBACK

    @classmethod
    def sent(cls, sender: str) -> "DispatchOutcome":
        return cls(kind=OutcomeKind.SENT, sender=sender)

    @classmethod
    def sent_with_fallback(cls, sender: str) -> "DispatchOutcome":
        return cls(kind=OutcomeKind.SENT_WITH_FALLBACK, sender=sender)

    @classmethod
    def validation_failed(cls, reason: str, details: str | None = None) -> "DispatchOutcome":
        return cls(kind=OutcomeKind.VALIDATION_FAILED, reason=reason, details=details)

    @classmethod
    def upload_failed(cls, reason: str, details: str | None = None, upload_kind: str = "type") -> "DispatchOutcome":
        return cls(kind=OutcomeKind.UPLOAD_FAILED, reason=reason, details=details, upload_kind=upload_kind)

    @classmethod
    def delivery_failed(cls, reason: str, details: str | None = None, smtp_code: int | None = None) -> "DispatchOutcome":
        return cls(kind=OutcomeKind.DELIVERY_FAILED, reason=reason, details=details, smtp_code=smtp_code)
