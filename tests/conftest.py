"""Shared test fixtures for the consultation relay test suite."""

from __future__ import annotations

import base64
import email
import os
from email import policy
from unittest.mock import MagicMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("SESSION_SECRET", "test-session-secret")
    os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
    os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
    os.environ.setdefault("GOOGLE_REDIRECT_URI", "http://localhost:3001/oauth2callback")
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("CLIENT_ORIGIN", "http://localhost:5173")
    os.environ.setdefault("DISPLAY_TIMEZONE", "UTC")


@pytest.fixture
def mock_http_response():
    """Factory fixture for creating mock httpx responses."""

    def _make(data: dict, status_code: int = 200):
        mock = MagicMock()
        mock.status_code = status_code
        mock.json.return_value = data
        mock.text = str(data)
        return mock

    return _make


@pytest.fixture
def google_client():
    """A stand-in for the per-request Calendar/Gmail client."""
    client = MagicMock()
    client.insert_event.return_value = {
        "id": "evt-123",
        "htmlLink": "https://calendar.google.com/event?eid=evt-123",
    }
    client.send_message.return_value = {"id": "msg-456"}
    return client


@pytest.fixture
def auth_manager(google_client):
    """A stand-in for GoogleAuthManager that attaches ``google_client``."""
    manager = MagicMock()
    manager.build_consent_url.return_value = "https://accounts.google.com/o/oauth2/v2/auth?x=1"
    manager.exchange_code.return_value = {
        "access_token": "ya29.test-access",
        "refresh_token": "1//test-refresh",
        "expires_in": 3599,
        "token_type": "Bearer",
    }
    manager.attach.return_value = google_client
    return manager


def decode_raw_message(raw: str) -> email.message.EmailMessage:
    """Decode a Gmail ``raw`` payload back into a message."""
    padded = raw + "=" * (-len(raw) % 4)
    return email.message_from_bytes(base64.urlsafe_b64decode(padded), policy=policy.default)


@pytest.fixture
def decode_message():
    return decode_raw_message
