import pytest
from fastapi.testclient import TestClient
from starlette import formparsers

from form_mail_relay.api import API_TOKEN_HEADER_NAME, create_app
from form_mail_relay.attachments import AttachmentPolicy
from form_mail_relay.composer import MailComposer
from form_mail_relay.errors import DeliveryError, SenderRejected
from form_mail_relay.relay import FormMailRelay
from tests.helpers import (
    PDF_BYTES,
    SERVICE_ADDRESS,
    FakeTransport,
    application_fields,
    contact_fields,
    encode_multipart,
    quiet_logger,
)


API_TOKEN = "secret-token"


@pytest.fixture
def spooled_files(monkeypatch):
    """Record every temporary file Starlette's own form parser would create."""
    created = []

    def spy(*args, **kwargs):
        created.append((args, kwargs))
        return real(*args, **kwargs)

    real = formparsers.SpooledTemporaryFile
    monkeypatch.setattr(formparsers, "SpooledTemporaryFile", spy)
    return created


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(transport):
    relay = FormMailRelay(
        transport,
        MailComposer(SERVICE_ADDRESS),
        policy=AttachmentPolicy(max_size=64 * 1024),
        cleanup_interval=None,
        logger=quiet_logger(),
    )
    return TestClient(create_app(relay, api_token=API_TOKEN, cors_origins=["https://site.example"]))


def post_application(client, fields=None, files=None):
    if files is None:
        files = {"resume": ("resume.pdf", PDF_BYTES, "application/pdf")}
    return client.post("/api/send-career-application", data=fields or application_fields(), files=files)


def test_status_is_open(client):
    response = client.get("/status")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_contact_success(client, transport):
    response = client.post("/api/send-email", json=contact_fields())
    assert response.status_code == 200
    assert response.json() == {"message": "Email sent successfully"}
    assert transport.sent[0].reply_to == "ada@x.com"


def test_contact_fallback_success_mentions_service_sender(client, transport):
    transport.failures.append(SenderRejected("Sender rejected", "535 bad credentials", smtp_code=535))
    response = client.post("/api/send-email", json=contact_fields())
    assert response.status_code == 200
    assert response.json()["message"] == "Email sent successfully using the service sender address"
    assert transport.sent[0].from_address == SERVICE_ADDRESS


def test_contact_missing_field_is_400(client, transport):
    fields = contact_fields()
    del fields["message"]
    response = client.post("/api/send-email", json=fields)
    assert response.status_code == 400
    assert response.json()["error"] == "All fields are required"
    assert transport.attempts == []


def test_contact_invalid_email_is_400(client):
    response = client.post("/api/send-email", json=contact_fields(email="not-an-email"))
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid email address"


def test_contact_delivery_failure_is_500(client, transport):
    transport.failures.append(DeliveryError("SMTP delivery failed", "421 service not available", smtp_code=421))
    response = client.post("/api/send-email", json=contact_fields())
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to send email", "details": "421 service not available"}


def test_malformed_json_is_400(client):
    response = client.post("/api/send-email", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


def test_application_success(client, transport):
    response = post_application(client)
    assert response.status_code == 200
    assert response.json() == {"message": "Application sent successfully"}
    message = transport.sent[0]
    assert message.subject == "Career Application: Backend Engineer (Full-time)"
    assert message.attachments[0].content == PDF_BYTES


def test_application_bad_phone_is_400(client, transport):
    response = post_application(client, application_fields(phone="12345"))
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid phone number"
    assert transport.attempts == []


def test_application_without_resume_is_400(client):
    response = client.post("/api/send-career-application", data=application_fields())
    assert response.status_code == 400
    assert response.json()["error"] == "All fields and resume are required"


def test_application_oversized_resume_is_400(client, transport, spooled_files):
    files = {"resume": ("resume.pdf", b"%PDF" + b"0" * (128 * 1024), "application/pdf")}
    response = post_application(client, files=files)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "File upload error"
    assert "File too large" in body["details"]
    assert transport.attempts == []
    assert spooled_files == []


def test_application_body_over_declared_ceiling_is_400(client, transport, spooled_files):
    files = {"resume": ("resume.pdf", b"%PDF" + b"0" * (5 * 1024 * 1024), "application/pdf")}
    response = post_application(client, files=files)
    assert response.status_code == 400
    assert response.json()["error"] == "File upload error"
    assert transport.attempts == []
    assert spooled_files == []


def test_accepted_resume_never_touches_disk(client, transport, spooled_files):
    files = {"resume": ("resume.pdf", b"%PDF" + b"0" * (40 * 1024), "application/pdf")}
    assert post_application(client, files=files).status_code == 200
    assert spooled_files == []


def test_empty_file_input_counts_as_missing_resume(client, transport):
    body, content_type = encode_multipart(
        application_fields(),
        [("resume", "", "application/octet-stream", b"")],
    )
    response = client.post("/api/send-career-application", content=body, headers={"Content-Type": content_type})
    assert response.status_code == 400
    assert response.json()["error"] == "All fields and resume are required"
    assert transport.attempts == []


def test_line_break_in_header_field_is_400(client, transport):
    response = client.post("/api/send-email", json=contact_fields(name="Ada\r\nBcc: victim@x.com"))
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid field value"
    assert transport.attempts == []


def test_application_malformed_body_is_400(client, transport):
    response = client.post(
        "/api/send-career-application",
        content=b"jobType=x",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"
    assert transport.attempts == []


def test_application_wrong_type_is_400(client, transport):
    files = {"resume": ("avatar.png", b"\x89PNG\r\n", "image/png")}
    response = post_application(client, files=files)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid file"
    assert "image/png" in body["details"]
    assert transport.attempts == []


def test_application_delivery_failure_is_500(client, transport):
    transport.failures.extend([
        SenderRejected("Sender rejected", "535 primary refused", smtp_code=535),
        DeliveryError("SMTP delivery failed", "fallback refused"),
    ])
    response = post_application(client)
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to send application", "details": "fallback refused"}


def test_ops_endpoints_require_token(client, transport):
    assert client.get("/metrics").status_code == 401
    assert client.get("/api/test-email", headers={API_TOKEN_HEADER_NAME: "wrong"}).status_code == 401
    assert transport.attempts == []


def test_test_email_with_token(client, transport):
    response = client.get("/api/test-email", headers={API_TOKEN_HEADER_NAME: API_TOKEN})
    assert response.status_code == 200
    assert response.json() == {"message": "Test email sent successfully"}
    assert transport.sent[0].subject == "Test Email"


def test_metrics_with_token(client):
    client.post("/api/send-email", json=contact_fields())
    response = client.get("/metrics", headers={API_TOKEN_HEADER_NAME: API_TOKEN})
    assert response.status_code == 200
    assert b"fmr_submissions_total" in response.content
    assert b'fmr_sent_total{form="contact",route="primary"} 1.0' in response.content


def test_cors_preflight_allows_configured_origin(client):
    response = client.options(
        "/api/send-email",
        headers={"Origin": "https://site.example", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://site.example"


def test_no_token_configured_leaves_ops_endpoints_open(transport):
    relay = FormMailRelay(transport, MailComposer(SERVICE_ADDRESS), cleanup_interval=None, logger=quiet_logger())
    client = TestClient(create_app(relay))
    assert client.get("/metrics").status_code == 200
