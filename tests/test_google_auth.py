"""Tests for the Google OAuth authorization manager."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from consult_relay.errors import AuthExchangeError, UpstreamError
from consult_relay.services.google_auth import (
    GOOGLE_SCOPES,
    GoogleAuthManager,
    credentials_to_tokens,
)
from consult_relay.services.google_client import GoogleWorkspaceClient


def _manager() -> GoogleAuthManager:
    return GoogleAuthManager(
        "client-123",
        "secret-456",
        "http://localhost:3001/oauth2callback",
    )


def _make_credentials(token="ya29.a", refresh_token="1//r", expiry=None):
    creds = MagicMock()
    creds.token = token
    creds.refresh_token = refresh_token
    creds.token_uri = "https://oauth2.googleapis.com/token"
    creds.scopes = list(GOOGLE_SCOPES)
    creds.expiry = expiry
    return creds


@pytest.fixture
def mock_flow():
    with patch("consult_relay.services.google_auth.Flow") as flow_cls:
        flow = MagicMock()
        flow.credentials = _make_credentials()
        flow_cls.from_client_config.return_value = flow
        yield flow_cls, flow


class TestConsentUrl:
    def test_requests_offline_access_with_forced_consent(self):
        url = urlparse(_manager().build_consent_url())
        params = parse_qs(url.query)

        assert url.netloc == "accounts.google.com"
        assert params["client_id"] == ["client-123"]
        assert params["redirect_uri"] == ["http://localhost:3001/oauth2callback"]
        assert params["response_type"] == ["code"]
        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]
        assert params["scope"][0].split() == list(GOOGLE_SCOPES)

    def test_no_pkce_challenge_is_sent(self):
        params = parse_qs(urlparse(_manager().build_consent_url()).query)
        assert "code_challenge" not in params

    def test_is_deterministic(self):
        manager = _manager()
        assert manager.build_consent_url() == manager.build_consent_url()

    def test_state_carries_widget_origin(self):
        params = parse_qs(urlparse(_manager().build_consent_url()).query)
        assert params["state"] == ["http://localhost:5173"]

    def test_scopes_cover_calendar_events_and_mail_send(self):
        assert any(s.endswith("/calendar.events") for s in GOOGLE_SCOPES)
        assert any(s.endswith("/gmail.send") for s in GOOGLE_SCOPES)

    def test_flow_is_built_from_client_config(self, mock_flow):
        flow_cls, flow = mock_flow
        flow.authorization_url.return_value = ("https://accounts.google.com/x", "state")

        assert _manager().build_consent_url() == "https://accounts.google.com/x"
        config = flow_cls.from_client_config.call_args[0][0]["web"]
        assert config["client_id"] == "client-123"
        assert config["client_secret"] == "secret-456"
        kwargs = flow_cls.from_client_config.call_args[1]
        assert kwargs["autogenerate_code_verifier"] is False
        assert kwargs["redirect_uri"] == "http://localhost:3001/oauth2callback"


class TestExchangeCode:
    def test_returns_token_bundle(self, mock_flow):
        _, flow = mock_flow
        tokens = _manager().exchange_code("auth-code")

        assert flow.fetch_token.call_args[1]["code"] == "auth-code"
        assert tokens["access_token"] == "ya29.a"
        assert tokens["refresh_token"] == "1//r"
        assert tokens["scopes"] == list(GOOGLE_SCOPES)

    def test_rejected_code_raises(self, mock_flow):
        _, flow = mock_flow
        flow.fetch_token.side_effect = ValueError("(invalid_grant) Bad Request")
        with pytest.raises(AuthExchangeError):
            _manager().exchange_code("expired")

    def test_network_error_raises(self, mock_flow):
        _, flow = mock_flow
        flow.fetch_token.side_effect = ConnectionError("unreachable")
        with pytest.raises(AuthExchangeError):
            _manager().exchange_code("code")

    def test_credentials_without_access_token_raise(self, mock_flow):
        _, flow = mock_flow
        flow.credentials = _make_credentials(token=None)
        with pytest.raises(AuthExchangeError):
            _manager().exchange_code("code")


class TestCredentialsToTokens:
    def test_expiry_is_serialised(self):
        tokens = credentials_to_tokens(_make_credentials(expiry=datetime(2030, 1, 1, 12, 0)))
        assert tokens["expiry"] == "2030-01-01T12:00:00"

    def test_client_secret_is_not_kept(self):
        assert "client_secret" not in credentials_to_tokens(_make_credentials())


class TestAttach:
    def test_builds_bearer_client(self):
        client = _manager().attach({"access_token": "ya29.a"})
        try:
            assert isinstance(client, GoogleWorkspaceClient)
            assert client._client.headers["Authorization"] == "Bearer ya29.a"
        finally:
            client.close()

    def test_each_call_builds_a_new_client(self):
        manager = _manager()
        first = manager.attach({"access_token": "a"})
        second = manager.attach({"access_token": "a"})
        assert first is not second
        first.close()
        second.close()

    def test_missing_access_token_is_upstream_error(self):
        with pytest.raises(UpstreamError):
            _manager().attach({"refresh_token": "1//r"})
