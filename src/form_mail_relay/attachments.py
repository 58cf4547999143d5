# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Resume attachment handling.

Uploaded files are checked against a MIME type and extension whitelist and a
hard size ceiling, then kept in memory as an
:class:`form_mail_relay.models.Attachment`. Nothing is written to disk: the
bytes live as long as the request that produced them.

Example:
    Accepting a resume read by :class:`form_mail_relay.formdata.MultipartFormReader`::

        policy = AttachmentPolicy()
        attachment = policy.accept(upload.filename, upload.mime_type, upload.content)
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable

from .errors import UploadError
from .models import Attachment

MAX_UPLOAD_BYTES = 4 * 1024 * 1024

ALLOWED_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        # Some browsers send this for .doc/.docx; the extension check still applies.
        "application/octet-stream",
    }
)
ALLOWED_EXTENSIONS = frozenset({".pdf", ".doc", ".docx"})

@dataclass(frozen=True)
class UploadedFile:
    """Raw upload as received from the HTTP layer, not yet accepted."""

    filename: str
    mime_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def file_extension(filename: str | None) -> str:
    """Lower-cased extension of ``filename`` including the dot, or ``""``."""
    if not filename:
        return ""
    return PurePath(filename).suffix.lower()


def guess_mime(filename: str) -> tuple[str, str]:
    """Guess the MIME type for ``filename`` as a ``(maintype, subtype)`` pair."""
    mt, _ = mimetypes.guess_type(filename)
    if not mt:
        return ("application", "octet-stream")
    return tuple(mt.split("/", 1))  # type: ignore[return-value]


class AttachmentPolicy:
    """Whitelist and size ceiling applied to uploaded resumes."""

    def __init__(
        self,
        *,
        allowed_mime_types: Iterable[str] = ALLOWED_MIME_TYPES,
        allowed_extensions: Iterable[str] = ALLOWED_EXTENSIONS,
        max_size: int = MAX_UPLOAD_BYTES,
    ):
        self.allowed_mime_types = frozenset(m.lower() for m in allowed_mime_types)
        self.allowed_extensions = frozenset(e.lower() for e in allowed_extensions)
        self.max_size = int(max_size)

    def describe_limit(self) -> str:
        if self.max_size % (1024 * 1024) == 0:
            return f"{self.max_size // (1024 * 1024)} MiB"
        return f"{self.max_size} bytes"

    def limit_error(self) -> UploadError:
        return UploadError(
            "File upload error",
            f"File too large: the size limit is {self.describe_limit()}",
            kind="limit",
        )

    def check_size(self, size: int) -> None:
        """Raise an ``UploadError`` of kind ``limit`` when ``size`` exceeds the ceiling."""
        if size > self.max_size:
            raise self.limit_error()

    def check_type(self, filename: str | None, mime_type: str | None) -> None:
        """Reject files whose MIME type or extension is not whitelisted."""
        ext = file_extension(filename)
        mime = (mime_type or "").split(";", 1)[0].strip().lower()
        if mime not in self.allowed_mime_types or ext not in self.allowed_extensions:
            raise UploadError(
                "Invalid file",
                "Invalid file type. Only PDF, DOC, or DOCX files are allowed. "
                f"Received MIME type: {mime_type or '-'}, Extension: {ext or '-'}",
                kind="type",
            )

    def accept(self, filename: str | None, mime_type: str | None, content: bytes | None) -> Attachment:
        """Run the size and type checks and build the attachment descriptor."""
        if content is not None:
            self.check_size(len(content))
        self.check_type(filename, mime_type)
        if not content:
            raise UploadError("Invalid file", f"Uploaded file {filename!r} is empty", kind="type")
        return Attachment(
            filename=PurePath(filename or "resume").name,
            content=bytes(content),
            mime_type=(mime_type or "application/octet-stream").split(";", 1)[0].strip().lower(),
        )
