# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Request orchestration for the form mail relay.

:class:`FormMailRelay` runs one submission through validation, attachment
handling (applications only), composition and dispatch, and always answers
with a :class:`form_mail_relay.models.DispatchOutcome`. Requests do not share
any state besides the transport, which is safe for concurrent sends.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

from .attachments import AttachmentPolicy, UploadedFile
from .composer import MailComposer
from .dispatch import DispatchEngine
from .errors import UploadError, ValidationError
from .logger import get_logger
from .models import Attachment, DispatchOutcome, FormKind
from .prometheus import RelayMetrics
from .smtp_pool import DEFAULT_POOL_SIZE, SMTPAccount
from .transport import MailTransport, SMTPTransport
from .validation import validate_application, validate_contact


class FormMailRelay:
    """Coordinate validation, composition and delivery of form submissions.

    Args:
        transport: Shared transport session.
        composer: Composer holding the service identity.
        fallback_address: Authenticated address used when a sender is rejected.
        policy: Attachment policy for resumes.
        metrics: Metrics collector shared with the dispatch engine.
        test_recipient: Default recipient of :meth:`send_test`.
        cleanup_interval: Seconds between pooled connection cleanups; ``None``
            disables the background cleanup task.
    """

    def __init__(
        self,
        transport: MailTransport,
        composer: MailComposer,
        *,
        fallback_address: str | None = None,
        policy: AttachmentPolicy | None = None,
        metrics: RelayMetrics | None = None,
        test_recipient: str | None = None,
        cleanup_interval: float | None = 60.0,
        logger=None,
    ):
        self.transport = transport
        self.composer = composer
        self.policy = policy or AttachmentPolicy()
        self.metrics = metrics or RelayMetrics()
        self.logger = logger or get_logger()
        self.engine = DispatchEngine(
            transport,
            fallback_address or composer.service_address,
            metrics=self.metrics,
            logger=self.logger,
        )
        self.test_recipient = test_recipient or composer.service_address
        self._cleanup_interval = cleanup_interval
        self._stop = asyncio.Event()
        self._task_cleanup: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "FormMailRelay":
        """Build the relay and its SMTP transport from :func:`load_settings` output."""
        account = SMTPAccount(
            host=str(settings["smtp_host"]),
            port=int(settings["smtp_port"]),
            user=settings.get("smtp_user"),
            password=settings.get("smtp_password"),
            use_tls=bool(settings.get("smtp_use_tls")),
        )
        transport = SMTPTransport(
            account,
            send_timeout=float(settings.get("send_timeout") or 30.0),
            pool_size=int(settings.get("smtp_pool_size") or DEFAULT_POOL_SIZE),
        )
        service_address = settings.get("service_address") or settings.get("smtp_user")
        if not service_address:
            raise ValueError("service_address (or smtp_user) must be configured")
        composer = MailComposer(str(service_address), settings.get("service_name"))
        return cls(
            transport,
            composer,
            fallback_address=settings.get("smtp_user") or str(service_address),
            policy=AttachmentPolicy(max_size=int(settings.get("max_upload_bytes") or AttachmentPolicy().max_size)),
            test_recipient=settings.get("test_recipient"),
        )

    # ----------------------------------------------------------------- lifecycle
    async def start(self) -> bool:
        """Check the transport once and start the connection cleanup task.

        A failed check is logged only; sends are still attempted later and
        report their own errors.
        """
        up = await self.transport.verify()
        self.metrics.set_transport_up(up)
        if not up:
            self.logger.warning("SMTP connectivity check failed; submissions will still be attempted")
        self._stop.clear()
        if self._cleanup_interval and hasattr(self.transport, "cleanup"):
            self._task_cleanup = asyncio.create_task(self._cleanup_loop(), name="smtp-cleanup-loop")
        return up

    async def stop(self) -> None:
        self._stop.set()
        if self._task_cleanup:
            await asyncio.gather(self._task_cleanup, return_exceptions=True)
            self._task_cleanup = None
        await self.transport.close()

    async def _cleanup_loop(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._cleanup_interval)
            except asyncio.TimeoutError:
                pass
            if self._stop.is_set():
                break
            try:
                await self.transport.cleanup()
            except Exception as exc:  # pragma: no cover
                self.logger.exception("SMTP connection cleanup failed: %s", exc)

    # --------------------------------------------------------------- submissions
    async def submit_contact(self, fields: Mapping[str, Any]) -> DispatchOutcome:
        """Validate, compose and send a contact form."""
        form = FormKind.CONTACT
        self.metrics.inc_submission(form.value)
        try:
            submission = validate_contact(fields)
        except ValidationError as exc:
            return self._rejected(form, exc, fields)
        message = self.composer.compose_contact(submission)
        return await self.engine.dispatch(message, form)

    async def submit_application(
        self,
        fields: Mapping[str, Any],
        resume: UploadedFile | Attachment | None,
    ) -> DispatchOutcome:
        """Validate a career application, accept its resume and send it."""
        form = FormKind.APPLICATION
        self.metrics.inc_submission(form.value)
        try:
            submission = validate_application(fields, resume)
        except ValidationError as exc:
            return self._rejected(form, exc, fields)
        try:
            attachment = self.policy.accept(resume.filename, getattr(resume, "mime_type", None), resume.content)
        except UploadError as exc:
            return self._upload_rejected(form, exc)
        message = self.composer.compose_application(submission, attachment)
        return await self.engine.dispatch(message, form)

    async def send_test(self, recipient: str | None = None) -> DispatchOutcome:
        """Send the fixed test message to ``recipient`` or the configured default."""
        form = FormKind.TEST
        self.metrics.inc_submission(form.value)
        message = self.composer.compose_test(recipient or self.test_recipient)
        return await self.engine.dispatch(message, form)

    # ------------------------------------------------------------------ helpers
    def _rejected(self, form: FormKind, exc: ValidationError, fields: Mapping[str, Any]) -> DispatchOutcome:
        self.logger.warning(
            "Rejected %s submission: %s (%s); email=%r to=%r",
            form.value,
            exc.message,
            exc.details or "-",
            fields.get("email"),
            fields.get("to_email"),
        )
        self.metrics.inc_validation_failure(form.value)
        return DispatchOutcome.validation_failed(exc.message, exc.details)

    def reject_upload(self, exc: UploadError, form: FormKind = FormKind.APPLICATION) -> DispatchOutcome:
        """Outcome for an upload refused before the submission reached the relay.

        The HTTP layer calls this when the body exceeded the size ceiling while
        being received.
        """
        self.metrics.inc_submission(form.value)
        return self._upload_rejected(form, exc)

    def _upload_rejected(self, form: FormKind, exc: UploadError) -> DispatchOutcome:
        self.logger.warning("Rejected %s upload (%s): %s", form.value, exc.kind, exc.details or exc.message)
        self.metrics.inc_upload_failure(form.value)
        return DispatchOutcome.upload_failed(exc.message, exc.details, upload_kind=exc.kind)
