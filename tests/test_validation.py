import pytest

from form_mail_relay.errors import ValidationError
from form_mail_relay.validation import (
    is_valid_email,
    is_valid_phone,
    validate_application,
    validate_contact,
)
from tests.helpers import application_fields, contact_fields, pdf_upload


def test_validate_contact_trims_values():
    submission = validate_contact(contact_fields(name="  Ada  ", to_email=" ops@co.com\n"))
    assert submission.name == "Ada"
    assert submission.recipient == "ops@co.com"
    assert submission.email == "ada@x.com"


@pytest.mark.parametrize("field", ["name", "email", "subject", "message", "to_email"])
@pytest.mark.parametrize("value", [None, "", "   ", "\t\n"])
def test_validate_contact_requires_every_field(field, value):
    fields = contact_fields(**{field: value})
    with pytest.raises(ValidationError) as excinfo:
        validate_contact(fields)
    assert excinfo.value.message == "All fields are required"
    assert field in excinfo.value.fields


def test_validate_contact_reports_all_missing_fields():
    with pytest.raises(ValidationError) as excinfo:
        validate_contact({"name": "Ada"})
    assert excinfo.value.fields == ("email", "subject", "message", "to_email")
    assert "email, subject, message, to_email" in excinfo.value.details


@pytest.mark.parametrize("email", ["ada", "ada@x", "ada.x.com", "@", "ada@.", "ada x@y z"])
def test_validate_contact_rejects_malformed_email(email):
    with pytest.raises(ValidationError) as excinfo:
        validate_contact(contact_fields(email=email))
    assert excinfo.value.message == "Invalid email address"


@pytest.mark.parametrize("email", ["ada@x.com", "a.b+tag@sub.domain.org", "x@y.z"])
def test_is_valid_email_accepts_simple_addresses(email):
    assert is_valid_email(email)


@pytest.mark.parametrize("phone", ["1234567890", "+123456789012345", " +441234567890 "])
def test_is_valid_phone_accepts_10_to_15_digits(phone):
    assert is_valid_phone(phone)


@pytest.mark.parametrize("phone", ["12345", "123456789", "+1234567890123456", "12-3456-7890", "++1234567890", "phone", ""])
def test_is_valid_phone_rejects_other_shapes(phone):
    assert not is_valid_phone(phone)


def test_validate_application_maps_wire_names():
    submission = validate_application(application_fields(), pdf_upload())
    assert submission.job_type == "Full-time"
    assert submission.full_name == "Grace Hopper"
    assert submission.recipient == "careers@co.com"


def test_validate_application_requires_resume():
    with pytest.raises(ValidationError) as excinfo:
        validate_application(application_fields(), None)
    assert excinfo.value.message == "All fields and resume are required"
    assert excinfo.value.fields == ("resume",)


def test_validate_application_rejects_short_phone():
    with pytest.raises(ValidationError) as excinfo:
        validate_application(application_fields(phone="12345"), pdf_upload())
    assert excinfo.value.message == "Invalid phone number"
    assert excinfo.value.fields == ("phone",)
    assert "phone" in excinfo.value.details


def test_validate_application_checks_email_before_phone():
    with pytest.raises(ValidationError) as excinfo:
        validate_application(application_fields(email="nope", phone="1"), pdf_upload())
    assert excinfo.value.message == "Invalid email address"


@pytest.mark.parametrize("field", ["name", "email", "subject", "to_email"])
@pytest.mark.parametrize("breaker", ["\r\n", "\n", "\r"])
def test_contact_header_fields_must_be_single_line(field, breaker):
    value = contact_fields()[field]
    fields = contact_fields(**{field: f"{value}{breaker}Bcc: victim@x.com"})
    with pytest.raises(ValidationError) as excinfo:
        validate_contact(fields)
    assert excinfo.value.message == "Invalid field value"
    assert excinfo.value.fields == (field,)


@pytest.mark.parametrize("field", ["jobType", "position", "fullName", "email", "to_email"])
def test_application_header_fields_must_be_single_line(field):
    value = application_fields()[field]
    with pytest.raises(ValidationError) as excinfo:
        validate_application(application_fields(**{field: f"{value}\nX-Injected: 1"}), pdf_upload())
    assert excinfo.value.fields == (field,)


def test_body_fields_may_span_lines():
    submission = validate_contact(contact_fields(message="First line\r\nSecond line"))
    assert submission.message == "First line\r\nSecond line"
    validate_application(application_fields(about="One\nTwo", experience="2019\n2021"), pdf_upload())
