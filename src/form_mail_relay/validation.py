# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Request validation for contact and career application submissions.

Both validators take the raw field mapping as received on the wire (the
original form field names, e.g. ``to_email`` or ``fullName``), trim every
value and return a frozen submission model. Anything missing or malformed
raises :class:`form_mail_relay.errors.ValidationError`. The functions are
pure: no network, no filesystem.
"""

from __future__ import annotations

from typing import Any, Mapping

from .errors import ValidationError
from .models import EMAIL_PATTERN, PHONE_PATTERN, ApplicationSubmission, ContactSubmission

# wire name -> model attribute, in form order
CONTACT_FIELDS: dict[str, str] = {
    "name": "name",
    "email": "email",
    "subject": "subject",
    "message": "message",
    "to_email": "recipient",
}

APPLICATION_FIELDS: dict[str, str] = {
    "jobType": "job_type",
    "position": "position",
    "fullName": "full_name",
    "phone": "phone",
    "email": "email",
    "qualification": "qualification",
    "degree": "degree",
    "experience": "experience",
    "about": "about",
    "to_email": "recipient",
}

# Fields that end up in message headers (From, Reply-To, To, Subject).
CONTACT_HEADER_FIELDS = ("name", "email", "subject", "to_email")
APPLICATION_HEADER_FIELDS = ("jobType", "position", "fullName", "email", "to_email")


def is_valid_email(value: str | None) -> bool:
    """Return ``True`` for ``something@something.something`` strings."""
    if not value:
        return False
    return EMAIL_PATTERN.search(value.strip()) is not None


def is_valid_phone(value: str | None) -> bool:
    """Return ``True`` for an optional ``+`` followed by 10 to 15 digits."""
    if value is None:
        return False
    return PHONE_PATTERN.match(value.strip()) is not None


def _normalise(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return str(value).strip()


def _collect(fields: Mapping[str, Any], names: Mapping[str, str]) -> tuple[dict[str, str], list[str]]:
    values: dict[str, str] = {}
    missing: list[str] = []
    for wire_name, attr in names.items():
        value = _normalise(fields.get(wire_name))
        if not value:
            missing.append(wire_name)
        values[attr] = value
    return values, missing


def _check_single_line(values: Mapping[str, str], names: Mapping[str, str], header_fields: tuple[str, ...]) -> None:
    broken = [wire for wire in header_fields if "\r" in values[names[wire]] or "\n" in values[names[wire]]]
    if broken:
        raise ValidationError(
            "Invalid field value",
            f"line breaks are not allowed in: {', '.join(broken)}",
            fields=tuple(broken),
        )


def validate_contact(fields: Mapping[str, Any]) -> ContactSubmission:
    """Validate a contact form and return the normalised submission."""
    values, missing = _collect(fields, CONTACT_FIELDS)
    if missing:
        raise ValidationError(
            "All fields are required",
            f"missing fields: {', '.join(missing)}",
            fields=tuple(missing),
        )
    _check_single_line(values, CONTACT_FIELDS, CONTACT_HEADER_FIELDS)
    if not is_valid_email(values["email"]):
        raise ValidationError("Invalid email address", f"email: {values['email']!r}", fields=("email",))
    return ContactSubmission(**values)


def validate_application(fields: Mapping[str, Any], resume: Any | None) -> ApplicationSubmission:
    """Validate a career application.

    ``resume`` is whatever the caller received for the file field; only its
    presence is checked here, the attachment policy checks its content.
    """
    values, missing = _collect(fields, APPLICATION_FIELDS)
    if resume is None:
        missing.append("resume")
    if missing:
        raise ValidationError(
            "All fields and resume are required",
            f"missing fields: {', '.join(missing)}",
            fields=tuple(missing),
        )
    _check_single_line(values, APPLICATION_FIELDS, APPLICATION_HEADER_FIELDS)
    if not is_valid_email(values["email"]):
        raise ValidationError("Invalid email address", f"email: {values['email']!r}", fields=("email",))
    if not is_valid_phone(values["phone"]):
        raise ValidationError(
            "Invalid phone number",
            "phone must be 10 to 15 digits with an optional leading '+'",
            fields=("phone",),
        )
    return ApplicationSubmission(**values)
