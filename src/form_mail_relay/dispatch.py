# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Dispatch engine with the one-shot sender fallback.

Per request the engine goes through::

    Dispatching(primary) -> Sent
                         -> Dispatching(fallback) -> SentWithFallback
                                                  -> Failed
                         -> Failed

The primary attempt sends the message exactly as composed. Only when the
transport raises :class:`form_mail_relay.errors.SenderRejected` is a second,
separately built message sent, identical except that its sender is the
service's authenticated address; ``Reply-To`` still points at the requester.
There is never more than one fallback and no other retry.
"""

from __future__ import annotations

from .errors import DeliveryError, SenderRejected, TransportError
from .logger import get_logger
from .models import ComposedMessage, DispatchOutcome, FormKind
from .prometheus import RelayMetrics
from .transport import MailTransport


class DispatchEngine:
    """Send composed messages through a shared :class:`MailTransport`.

    Args:
        transport: Transport session built once at startup and shared by all
            requests.
        fallback_address: The transport's own authenticated address, used as
            sender for the fallback attempt.
        metrics: Optional metrics collector.
        logger: Optional logger; defaults to ``get_logger("DispatchEngine")``.
    """

    def __init__(
        self,
        transport: MailTransport,
        fallback_address: str,
        *,
        metrics: RelayMetrics | None = None,
        logger=None,
    ):
        self.transport = transport
        self.fallback_address = fallback_address
        self.metrics = metrics or RelayMetrics()
        self.logger = logger or get_logger("DispatchEngine")

    async def dispatch(self, message: ComposedMessage, form: FormKind | str = FormKind.CONTACT) -> DispatchOutcome:
        """Deliver ``message`` and report which terminal state was reached."""
        form_label = form.value if isinstance(form, FormKind) else str(form)

        try:
            await self.transport.send(message)
        except SenderRejected as exc:
            self.logger.warning(
                "Sender %s rejected for %s message to %s (SMTP %s): %s; retrying from %s",
                message.from_address,
                form_label,
                message.to_address,
                exc.smtp_code or "-",
                exc.details or exc.message,
                self.fallback_address,
            )
        except TransportError as exc:
            return self._failed(message, form_label, exc, attempt="primary")
        else:
            self.logger.info("Delivered %s message to %s from %s", form_label, message.to_address, message.from_address)
            self.metrics.inc_sent(form_label, fallback=False)
            return DispatchOutcome.sent(message.from_address)

        fallback = message.with_sender(self.fallback_address)
        try:
            await self.transport.send(fallback)
        except TransportError as exc:
            return self._failed(fallback, form_label, exc, attempt="fallback")
        self.logger.info(
            "Delivered %s message to %s from fallback sender %s (reply-to %s)",
            form_label,
            fallback.to_address,
            fallback.from_address,
            fallback.reply_to or "-",
        )
        self.metrics.inc_sent(form_label, fallback=True)
        return DispatchOutcome.sent_with_fallback(fallback.from_address)

    def _failed(self, message: ComposedMessage, form_label: str, exc: TransportError, *, attempt: str) -> DispatchOutcome:
        if isinstance(exc, SenderRejected):
            # Only reachable on the fallback attempt: the service address itself was refused.
            error = DeliveryError(exc.message, exc.details, smtp_code=exc.smtp_code)
        else:
            error = exc
        self.logger.error(
            "Delivery of %s message to %s failed on %s attempt from %s (SMTP %s): %s",
            form_label,
            message.to_address,
            attempt,
            message.from_address,
            error.smtp_code or "-",
            error.details or error.message,
        )
        self.metrics.inc_delivery_failure(form_label)
        return DispatchOutcome.delivery_failed(error.message, error.details or error.message, smtp_code=error.smtp_code)
