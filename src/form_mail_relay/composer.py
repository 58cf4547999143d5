# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Build immutable message envelopes from validated submissions.

:class:`MailComposer` turns a submission into a
:class:`form_mail_relay.models.ComposedMessage`; :func:`render` turns that
into an :class:`email.message.EmailMessage` for the SMTP transport.

Form values are interpolated into the HTML bodies as-is, without escaping.
The relay serves a closed deployment whose forms are the only input, and the
recipients are the site operators; this is a known HTML injection surface
kept on purpose (see ``DESIGN.md``).
"""

from __future__ import annotations

from email.message import EmailMessage

from .attachments import guess_mime
from .models import Attachment, ApplicationSubmission, ComposedMessage, ContactSubmission

TEST_SUBJECT = "Test Email"
TEST_BODY = "This is a test email from the server."


class MailComposer:
    """Compose contact, application and test messages.

    Args:
        service_address: Fixed sender identity used for career applications
            and test messages.
        service_name: Optional display name for messages sent as the service.
    """

    def __init__(self, service_address: str, service_name: str | None = None):
        self.service_address = service_address
        self.service_name = service_name

    def compose_contact(self, submission: ContactSubmission) -> ComposedMessage:
        """Contact messages are sent from the requester's own address."""
        s = submission
        text = f"Message from {s.name} ({s.email}):\n\n{s.message}"
        html = (
            f"<p><strong>From:</strong> {s.name} ({s.email})</p>\n"
            f"<p><strong>Subject:</strong> {s.subject}</p>\n"
            "<p><strong>Message:</strong></p>\n"
            f"<p>{s.message}</p>\n"
        )
        return ComposedMessage(
            from_address=s.email,
            from_name=s.name,
            reply_to=s.email,
            to_address=s.recipient,
            subject=s.subject,
            text_body=text,
            html_body=html,
        )

    def compose_application(self, submission: ApplicationSubmission, resume: Attachment) -> ComposedMessage:
        """Applications are sent from the service identity, never the applicant."""
        s = submission
        rows = [
            ("Job Type", s.job_type),
            ("Position", s.position),
            ("Name", s.full_name),
            ("Phone", s.phone),
            ("Email", s.email),
            ("Qualification", s.qualification),
            ("Degree", s.degree),
            ("Experience", s.experience),
        ]
        text = "New career application:\n\n"
        text += "\n".join(f"{label}: {value}" for label, value in rows)
        text += f"\nAbout: {s.about}"
        html = "<h3>New Career Application</h3>\n"
        html += "".join(f"<p><strong>{label}:</strong> {value}</p>\n" for label, value in rows)
        html += f"<p><strong>About:</strong></p><p>{s.about}</p>\n"
        return ComposedMessage(
            from_address=self.service_address,
            from_name=s.full_name,
            reply_to=s.email,
            to_address=s.recipient,
            subject=f"Career Application: {s.position} ({s.job_type})",
            text_body=text,
            html_body=html,
            attachments=(resume,),
        )

    def compose_test(self, recipient: str) -> ComposedMessage:
        return ComposedMessage(
            from_address=self.service_address,
            from_name=self.service_name,
            to_address=recipient,
            subject=TEST_SUBJECT,
            text_body=TEST_BODY,
        )


def render(message: ComposedMessage) -> EmailMessage:
    """Translate a :class:`ComposedMessage` into an :class:`EmailMessage`.

    ``Date`` and ``Message-ID`` are left to the transport.
    """
    msg = EmailMessage()
    msg["From"] = message.formatted_from
    msg["To"] = message.to_address
    msg["Subject"] = message.subject
    if message.reply_to:
        msg["Reply-To"] = message.reply_to
    msg.set_content(message.text_body)
    if message.html_body:
        msg.add_alternative(message.html_body, subtype="html")
    for att in message.attachments:
        if att.mime_type and att.mime_type != "application/octet-stream" and "/" in att.mime_type:
            maintype, subtype = att.mime_type.split("/", 1)
        else:
            maintype, subtype = guess_mime(att.filename)
        msg.add_attachment(att.content, maintype=maintype, subtype=subtype, filename=att.filename)
    return msg
