# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Mail transport: the single injected dependency that actually sends mail.

:class:`MailTransport` is the seam used by
:class:`form_mail_relay.dispatch.DispatchEngine`; tests substitute an
in-memory double. :class:`SMTPTransport` is the production implementation
on top of ``aiosmtplib``.

Transport failures are reported by type:

- :class:`form_mail_relay.errors.SenderRejected` when the provider refuses
  the sender (authentication failures, ``MAIL FROM`` refusals, 530/535/553
  replies, or replies that say so in their text).
- :class:`form_mail_relay.errors.DeliveryError` for everything else,
  timeouts and connection errors included.
"""

from __future__ import annotations

import asyncio
from email.utils import formatdate, make_msgid
from typing import Protocol

import aiosmtplib

from .composer import render
from .errors import DeliveryError, SenderRejected, TransportError
from .logger import get_logger
from .models import ComposedMessage
from .smtp_pool import DEFAULT_POOL_SIZE, SMTPAccount, SMTPPool

DEFAULT_SEND_TIMEOUT = 30.0

SENDER_REJECTION_CODES = frozenset({530, 535, 553})
SENDER_REJECTION_PATTERNS = (
    "sender address rejected",
    "sender rejected",
    "sender denied",
    "sender not allowed",
    "unauthorized sender",
    "not owned by",
    "not allowed to send as",
    "not authorized to send",
    "authentication required",
)


class MailTransport(Protocol):
    """Interface the dispatch engine sends through."""

    async def send(self, message: ComposedMessage) -> None:
        """Deliver ``message`` or raise ``SenderRejected``/``DeliveryError``."""
        ...

    async def verify(self) -> bool:
        """Connectivity check; never raises."""
        ...

    async def close(self) -> None:
        ...


def smtp_code_of(exc: BaseException) -> int | None:
    """Return the SMTP reply code carried by ``exc``, if any."""
    if isinstance(exc, aiosmtplib.SMTPRecipientsRefused):
        codes = [getattr(r, "code", None) for r in exc.recipients]
        return next((c for c in codes if c), None)
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None


def classify_smtp_error(exc: BaseException, detail: str | None = None) -> TransportError:
    """Map a raw transport exception onto the relay's error taxonomy."""
    code = smtp_code_of(exc)
    detail = detail if detail is not None else (str(exc) or exc.__class__.__name__)

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, aiosmtplib.SMTPTimeoutError)):
        return DeliveryError("SMTP send timed out", detail, smtp_code=code)
    if isinstance(exc, (aiosmtplib.SMTPRecipientsRefused, aiosmtplib.SMTPRecipientRefused)):
        return DeliveryError("Recipient refused", detail, smtp_code=code)
    if isinstance(exc, (aiosmtplib.SMTPAuthenticationError, aiosmtplib.SMTPSenderRefused)):
        return SenderRejected("Sender rejected", detail, smtp_code=code)
    if isinstance(exc, aiosmtplib.SMTPResponseException):
        if code in SENDER_REJECTION_CODES:
            return SenderRejected("Sender rejected", detail, smtp_code=code)
        lowered = detail.lower()
        if any(pattern in lowered for pattern in SENDER_REJECTION_PATTERNS):
            return SenderRejected("Sender rejected", detail, smtp_code=code)
    return DeliveryError("SMTP delivery failed", detail, smtp_code=code)


class SMTPTransport:
    """Send composed messages through the authenticated SMTP account.

    Args:
        account: SMTP host, port, credentials and TLS mode.
        send_timeout: Upper bound in seconds for connecting and sending one
            message. Expiry is reported as ``DeliveryError``.
        pool: Optional pre-built :class:`SMTPPool` (tests inject fakes here).
        pool_size: Maximum number of simultaneous SMTP connections when the
            pool is built here. Sends beyond it wait for a free connection.
    """

    def __init__(
        self,
        account: SMTPAccount,
        *,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
        pool: SMTPPool | None = None,
        pool_size: int = DEFAULT_POOL_SIZE,
    ):
        self.account = account
        self.send_timeout = float(send_timeout)
        self.pool = pool or SMTPPool(account, size=pool_size)
        self.logger = get_logger("SMTPTransport")

    def redact(self, text: str) -> str:
        """Remove the account password from ``text``."""
        if self.account.password and self.account.password in text:
            return text.replace(self.account.password, "***")
        return text

    async def send(self, message: ComposedMessage) -> None:
        try:
            email_msg = render(message)
        except (ValueError, TypeError) as exc:
            raise DeliveryError("Failed to build message", str(exc)) from exc
        domain = message.from_address.rsplit("@", 1)[-1] or None
        email_msg["Date"] = formatdate(localtime=False)
        email_msg["Message-ID"] = make_msgid(domain=domain)

        try:
            async with asyncio.timeout(self.send_timeout):
                async with self.pool.connection() as smtp:
                    await smtp.send_message(email_msg, sender=message.from_address, recipients=[message.to_address])
        except Exception as exc:
            error = classify_smtp_error(exc, self.redact(str(exc) or exc.__class__.__name__))
            self.logger.debug("SMTP send from %s to %s failed: %r", message.from_address, message.to_address, exc)
            raise error from exc

    async def verify(self) -> bool:
        """Connect, authenticate and ``NOOP`` once; log the result."""
        try:
            smtp = await self.pool.connect()
        except Exception as exc:
            self.logger.error("SMTP Connection Error (%s:%s): %s", self.account.host, self.account.port, self.redact(str(exc)))
            return False
        try:
            code, _ = await asyncio.wait_for(smtp.noop(), timeout=5.0)
        except Exception as exc:
            self.logger.error("SMTP connectivity check failed on %s:%s: %s", self.account.host, self.account.port, self.redact(str(exc)))
            return False
        finally:
            try:
                await smtp.quit()
            except Exception as exc:
                self.logger.debug("Ignoring error while closing check connection: %s", exc)
        if code != 250:
            self.logger.error("SMTP connectivity check got unexpected NOOP reply %s", code)
            return False
        self.logger.info("SMTP Server is ready to send emails (%s:%s)", self.account.host, self.account.port)
        return True

    async def cleanup(self) -> None:
        await self.pool.cleanup()

    async def close(self) -> None:
        await self.pool.close_all()
