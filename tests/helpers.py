# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Doubles and sample data shared by the relay tests."""

from __future__ import annotations

import types
from typing import List

from form_mail_relay.attachments import UploadedFile
from form_mail_relay.models import ComposedMessage

SERVICE_ADDRESS = "relay@service.example"

PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n"


class FakeTransport:
    """In-memory transport raising queued errors, one per send."""

    def __init__(self):
        self.attempts: List[ComposedMessage] = []
        self.sent: List[ComposedMessage] = []
        self.failures: List[Exception] = []
        self.verify_result = True
        self.verified = 0
        self.closed = False

    async def send(self, message: ComposedMessage) -> None:
        self.attempts.append(message)
        if self.failures:
            raise self.failures.pop(0)
        self.sent.append(message)

    async def verify(self) -> bool:
        self.verified += 1
        return self.verify_result

    async def close(self) -> None:
        self.closed = True


def quiet_logger():
    return types.SimpleNamespace(
        warning=lambda *args, **kwargs: None,
        error=lambda *args, **kwargs: None,
        exception=lambda *args, **kwargs: None,
        info=lambda *args, **kwargs: None,
        debug=lambda *args, **kwargs: None,
    )


def contact_fields(**overrides):
    fields = {
        "name": "Ada",
        "email": "ada@x.com",
        "subject": "Hi",
        "message": "Hello",
        "to_email": "ops@co.com",
    }
    fields.update(overrides)
    return fields


def application_fields(**overrides):
    fields = {
        "jobType": "Full-time",
        "position": "Backend Engineer",
        "fullName": "Grace Hopper",
        "phone": "+12345678901",
        "email": "grace@navy.example",
        "qualification": "PhD",
        "degree": "Mathematics",
        "experience": "10 years",
        "about": "Compilers.",
        "to_email": "careers@co.com",
    }
    fields.update(overrides)
    return fields


def pdf_upload(name: str = "resume.pdf", content: bytes = PDF_BYTES, mime_type: str = "application/pdf") -> UploadedFile:
    return UploadedFile(filename=name, mime_type=mime_type, content=content)


BOUNDARY = "----relayformboundary7MA4YWxkTrZu0gW"


def encode_multipart(fields, files=(), boundary: str = BOUNDARY):
    """Encode a form the way a browser does; ``files`` holds ``(name, filename, mime, content)``."""
    parts = []
    for name, value in fields.items():
        parts.append(
            f'--{boundary}\r\nContent-Disposition: form-data; name="{name}"\r\n\r\n'.encode()
            + str(value).encode("utf-8")
            + b"\r\n"
        )
    for name, filename, mime_type, content in files:
        parts.append(
            f'--{boundary}\r\nContent-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
            f"Content-Type: {mime_type}\r\n\r\n".encode()
            + content
            + b"\r\n"
        )
    body = b"".join(parts) + f"--{boundary}--\r\n".encode()
    return body, f"multipart/form-data; boundary={boundary}"


async def chunked(body: bytes, size: int = 64 * 1024, consumed: list | None = None):
    """Yield ``body`` in chunks, recording each chunk handed out."""
    for start in range(0, len(body), size):
        chunk = body[start:start + size]
        if consumed is not None:
            consumed.append(len(chunk))
        yield chunk
