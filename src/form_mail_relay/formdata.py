# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""In-memory ``multipart/form-data`` reader for the career application form.

The request body is fed to python-multipart's push parser as it arrives.
Text fields and the resume are collected in memory and the byte counters are
checked on every chunk: a body or resume over the ceiling stops the read at
once with an ``UploadError`` of kind ``limit``, before the attachment policy's
type filter runs. No temporary file is ever created.

Example:
    ::

        reader = MultipartFormReader(policy)
        reader.check_length(request.headers.get("content-length"))
        fields, resume = await reader.read(request.headers.get("content-type"), request.stream())
"""

from __future__ import annotations

from typing import AsyncIterable

from python_multipart.exceptions import FormParserError
from python_multipart.multipart import MultipartParser, parse_options_header

from .attachments import AttachmentPolicy, UploadedFile
from .errors import ValidationError

FILE_FIELD = "resume"
MAX_FIELD_BYTES = 64 * 1024
# Room for the text fields, part headers and boundaries on top of the resume.
FORM_OVERHEAD_BYTES = 256 * 1024


class _FormCollector:
    """python-multipart callbacks accumulating one form."""

    def __init__(self, reader: "MultipartFormReader"):
        self.reader = reader
        self.fields: dict[str, str] = {}
        self.upload: UploadedFile | None = None
        self._headers: dict[bytes, bytes] = {}
        self._header_name = b""
        self._header_value = b""
        self._name = ""
        self._filename: str | None = None
        self._mime_type = ""
        self._data = bytearray()

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
        }

    def on_part_begin(self) -> None:
        self._headers = {}
        self._data = bytearray()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_name += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[self._header_name.lower()] = self._header_value
        self._header_name = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        _, options = parse_options_header(self._headers.get(b"content-disposition", b""))
        self._name = options.get(b"name", b"").decode("utf-8", errors="replace")
        filename = options.get(b"filename")
        self._filename = None if filename is None else filename.decode("utf-8", errors="replace")
        self._mime_type = self._headers.get(b"content-type", b"").decode("latin-1").strip()

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._data += data[start:end]
        if self._filename is not None:
            self.reader.policy.check_size(len(self._data))
        elif len(self._data) > self.reader.max_field_bytes:
            raise ValidationError("Invalid request", f"field {self._name!r} is too long")

    def on_part_end(self) -> None:
        if self._filename is None:
            self.fields[self._name] = bytes(self._data).decode("utf-8", errors="replace")
        # Browsers send an empty file input as a part with filename="": no resume.
        elif self._name == self.reader.file_field and self._filename:
            self.upload = UploadedFile(filename=self._filename, mime_type=self._mime_type, content=bytes(self._data))


class MultipartFormReader:
    """Read one multipart form into ``(fields, upload)`` without touching disk.

    Args:
        policy: Attachment policy whose ``max_size`` bounds the file part.
        file_field: Name of the file part kept as the upload.
        max_field_bytes: Ceiling for any single text field.
        overhead_bytes: Allowance for everything in the body besides the file.
    """

    def __init__(
        self,
        policy: AttachmentPolicy,
        *,
        file_field: str = FILE_FIELD,
        max_field_bytes: int = MAX_FIELD_BYTES,
        overhead_bytes: int = FORM_OVERHEAD_BYTES,
    ):
        self.policy = policy
        self.file_field = file_field
        self.max_field_bytes = max_field_bytes
        self.overhead_bytes = overhead_bytes

    @property
    def max_body_bytes(self) -> int:
        return self.policy.max_size + self.overhead_bytes

    def check_length(self, content_length: str | None) -> None:
        """Refuse a declared body size over the ceiling before reading anything."""
        if not content_length:
            return
        try:
            length = int(content_length)
        except ValueError:
            raise ValidationError("Invalid request", "malformed Content-Length header") from None
        if length > self.max_body_bytes:
            raise self.policy.limit_error()

    async def read(
        self,
        content_type: str | None,
        chunks: AsyncIterable[bytes],
    ) -> tuple[dict[str, str], UploadedFile | None]:
        """Parse the body streamed by ``chunks``.

        Raises:
            UploadError: The body or the file part exceeded its ceiling.
            ValidationError: The body is not a well-formed multipart form.
        """
        mime, params = parse_options_header(content_type or "")
        boundary = params.get(b"boundary")
        if mime != b"multipart/form-data" or not boundary:
            raise ValidationError("Invalid request", "expected a multipart/form-data body")

        collector = _FormCollector(self)
        parser = MultipartParser(boundary, collector.callbacks())
        received = 0
        try:
            async for chunk in chunks:
                if not chunk:
                    continue
                received += len(chunk)
                if received > self.max_body_bytes:
                    raise self.policy.limit_error()
                parser.write(chunk)
            parser.finalize()
        except FormParserError as exc:
            raise ValidationError("Invalid request", f"malformed multipart body: {exc}") from exc
        return collector.fields, collector.upload
