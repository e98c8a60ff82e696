"""Shared fakes for the provider and SMTP transport collaborators."""

from __future__ import annotations

import pytest

from app import create_app
from app.errors import TransportError, TransportFailure


class FakeCompletionClient:
    provider_name = "OpenAI"
    configured = True

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def complete(self, system_prompt, user_prompt, *, temperature=None, max_tokens=None):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


class FakeTransport:
    sender_address = "sender@example.com"
    sender_name = "Email Sender App"
    configured = True

    def __init__(self, failing=None, unreachable=None):
        self.failing = dict(failing or {})
        self.unreachable = unreachable
        self.verified = 0
        self.delivered = []

    def verify_connectivity(self):
        self.verified += 1
        if self.unreachable is not None:
            raise self.unreachable

    def test_connection(self):
        self.verify_connectivity()
        return {"success": True, "message": "Email service connection successful"}

    def deliver(self, message):
        if message.to in self.failing:
            raise TransportError(TransportFailure.OTHER, self.failing[message.to])
        self.delivered.append(message)
        return f"<{len(self.delivered)}@example.com>"

    def summary(self):
        return {"configured": True, "host": "smtp.example.com", "user": "sen***@example.com"}


@pytest.fixture
def completion_client():
    return FakeCompletionClient()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def app(completion_client, transport):
    return create_app(
        {"TESTING": True},
        completion_client=completion_client,
        transport=transport,
    )


@pytest.fixture
def client(app):
    return app.test_client()
