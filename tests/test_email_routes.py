"""Tests for the /api/email endpoints."""
import pytest

from app import create_app
from app.errors import ProviderError, ProviderFailure, TransportError, TransportFailure
from tests.conftest import FakeCompletionClient, FakeTransport


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_generate_returns_normalized_email(client, completion_client):
    completion_client.responses.append(
        'Here you go!\n{"subject": "Offsite", "body": "Hi team,\\n\\nPack a jacket."}'
    )
    response = client.post(
        "/api/email/generate",
        json={"prompt": "Remind the team about the offsite", "tone": "casual"},
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["success"] is True
    assert payload["data"]["subject"] == "Offsite"
    assert payload["data"]["body"] == "Hi team,\n\nPack a jacket."
    metadata = payload["data"]["metadata"]
    assert metadata["tone"] == "casual"
    assert metadata["emailType"] == "general"
    assert metadata["normalization"] == {"stage": "json", "clean": True}


def test_generate_validation_errors(client, completion_client):
    response = client.post(
        "/api/email/generate",
        json={"prompt": "short", "tone": "angry", "recipients": ["nope"]},
    )
    assert response.status_code == 400
    payload = response.get_json()
    assert payload["message"] == "Validation error"
    assert '"prompt" length must be at least 10 characters long' in payload["details"]
    assert '"tone" must be one of [professional, casual, formal, friendly]' in payload["details"]
    assert completion_client.calls == []


def test_generate_rejects_invalid_recipient_addresses(client):
    response = client.post(
        "/api/email/generate",
        json={"prompt": "Long enough prompt here", "recipients": ["ok@x.com", "nope"]},
    )
    assert response.status_code == 400
    assert response.get_json()["details"] == ["Invalid email format: nope"]


def test_generate_maps_quota_errors(transport):
    failing = FakeCompletionClient(
        error=ProviderError(ProviderFailure.QUOTA_EXCEEDED, "OpenAI API quota exceeded. Please check your billing.")
    )
    client = create_app({"TESTING": True}, completion_client=failing, transport=transport).test_client()
    response = client.post("/api/email/generate", json={"prompt": "Write a short thank you"})
    assert response.status_code == 429
    assert response.get_json() == {
        "success": False,
        "message": "OpenAI API quota exceeded. Please check your billing.",
    }


def test_improve_keeps_subject(client, completion_client):
    completion_client.responses.append('{"body": "Tighter wording."}')
    response = client.post(
        "/api/email/improve",
        json={
            "originalEmail": {"subject": "Notes", "body": "Loose wording here."},
            "improvementRequest": "Tighten it up",
        },
    )
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["subject"] == "Notes"
    assert data["body"] == "Tighter wording."


def test_improve_validation_errors(client):
    response = client.post(
        "/api/email/improve",
        json={"originalEmail": {"subject": ""}, "improvementRequest": "no"},
    )
    assert response.status_code == 400
    details = response.get_json()["details"]
    assert '"originalEmail.subject" is not allowed to be empty' in details
    assert '"originalEmail.body" is required' in details
    assert '"improvementRequest" length must be at least 5 characters long' in details


def test_send_reports_partial_failure(app):
    transport = app.extensions["email_sender"]["transport"]
    transport.failing["first@x.com"] = "Email sending failed: 550 no such user"
    response = app.test_client().post(
        "/api/email/send",
        json={
            "recipients": ["first@x.com", "second@x.com"],
            "subject": "Hello",
            "body": "A body that is long enough.",
            "senderName": "Desk",
        },
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["message"] == "Email sent successfully to 1 out of 2 recipients"
    data = payload["data"]
    assert data["totalRecipients"] == 2
    assert data["successful"] == 1
    assert data["failed"] == 1
    assert data["results"][0] == {
        "email": "first@x.com",
        "status": "failed",
        "error": "Email sending failed: 550 no such user",
    }
    assert data["results"][1]["status"] == "sent"
    assert data["results"][1]["messageId"] == "<1@example.com>"
    assert data["failures"] == [
        {"email": "first@x.com", "error": "Email sending failed: 550 no such user"}
    ]
    assert transport.delivered[0].from_header == "Desk <sender@example.com>"


def test_send_rejects_bad_address_without_touching_transport(client, transport):
    response = client.post(
        "/api/email/send",
        json={
            "recipients": ["good@x.com", "not-an-email"],
            "subject": "Hello",
            "body": "A body that is long enough.",
        },
    )
    assert response.status_code == 400
    payload = response.get_json()
    assert "not-an-email" in payload["message"]
    assert payload["details"] == ["Invalid email format: not-an-email"]
    assert transport.verified == 0


def test_send_payload_validation(client):
    response = client.post("/api/email/send", json={"recipients": [], "subject": "", "body": "short"})
    assert response.status_code == 400
    assert response.get_json()["details"] == [
        '"recipients" must contain at least 1 items',
        '"subject" is not allowed to be empty',
        '"body" length must be at least 10 characters long',
    ]


def test_send_with_unreachable_transport(completion_client):
    transport = FakeTransport(
        unreachable=TransportError(
            TransportFailure.CONNECTION,
            "Failed to connect to email server. Please check your network connection.",
        )
    )
    client = create_app({"TESTING": True}, completion_client=completion_client, transport=transport).test_client()
    response = client.post(
        "/api/email/send",
        json={"recipients": ["a@x.com"], "subject": "Hi", "body": "Long enough body."},
    )
    assert response.status_code == 503
    assert response.get_json()["success"] is False
    assert transport.delivered == []


def test_non_json_body_is_a_validation_error(client):
    response = client.post("/api/email/send", data="not json", content_type="text/plain")
    assert response.status_code == 400
    assert '"recipients" is required' in response.get_json()["details"]


def test_validate_endpoint(client):
    response = client.post("/api/email/validate", json={"emails": ["a@x.com", "bad", ""]})
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data == {
        "validEmails": ["a@x.com"],
        "invalidEmails": ["Invalid email format: bad", "Email at position 3 is empty"],
        "totalValid": 1,
        "totalInvalid": 2,
    }


def test_validate_requires_array(client):
    response = client.post("/api/email/validate", json={"emails": "a@x.com"})
    assert response.status_code == 400
    assert response.get_json()["message"] == "Emails must be provided as an array"


def test_test_connection_success(client, transport):
    response = client.get("/api/email/test-connection")
    assert response.status_code == 200
    assert response.get_json() == {"success": True, "message": "Email service connection successful"}
    assert transport.verified == 1


def test_test_connection_failure(completion_client):
    transport = FakeTransport(
        unreachable=TransportError(TransportFailure.AUTHENTICATION, "Email authentication failed.")
    )
    client = create_app({"TESTING": True}, completion_client=completion_client, transport=transport).test_client()
    response = client.get("/api/email/test-connection")
    assert response.status_code == 502
    assert response.get_json() == {"success": False, "message": "Email authentication failed."}


def test_status(client):
    response = client.get("/api/email/status")
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["emailService"]["user"] == "sen***@example.com"
    assert data["aiService"] == {"configured": True, "provider": "OpenAI"}
    assert data["server"]["environment"]


@pytest.mark.parametrize("path", ["/api/email/generate", "/api/email/send", "/api/email/improve"])
def test_rate_limit(completion_client, transport, path):
    app = create_app(
        {"TESTING": True, "RATE_LIMIT_PER_WINDOW": 2},
        completion_client=completion_client,
        transport=transport,
    )
    client = app.test_client()
    codes = [client.post(path, json={}).status_code for _ in range(3)]
    assert codes == [400, 400, 429]
    assert client.get("/api/email/status").status_code == 200


def test_rate_limit_state_is_per_app(completion_client, transport):
    first = create_app({"TESTING": True, "RATE_LIMIT_PER_WINDOW": 1}, completion_client=completion_client, transport=transport)
    second = create_app({"TESTING": True, "RATE_LIMIT_PER_WINDOW": 1}, completion_client=completion_client, transport=transport)
    first.test_client().post("/api/email/generate", json={})
    assert first.test_client().post("/api/email/generate", json={}).status_code == 429
    assert second.test_client().post("/api/email/generate", json={}).status_code == 400


def test_smtp_configuration_issues_are_logged_at_startup(monkeypatch, caplog, completion_client):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_FROM_EMAIL", "s@example.com")
    monkeypatch.setenv("SMTP_USE_SSL", "true")
    monkeypatch.setenv("SMTP_USE_STARTTLS", "true")
    create_app({"TESTING": True}, completion_client=completion_client)
    assert any(
        "SMTP cannot enable both SSL and STARTTLS" in record.getMessage()
        for record in caplog.records
    )
