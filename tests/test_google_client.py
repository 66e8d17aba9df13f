"""Tests for the Calendar/Gmail REST client."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from consult_relay.services.google_client import (
    GoogleAPIError,
    GoogleWorkspaceClient,
    encode_message,
)


@pytest.fixture
def client():
    c = GoogleWorkspaceClient("ya29.test")
    yield c
    c.close()


class TestInsertEvent:
    def test_posts_event_to_calendar(self, client, mock_http_response):
        event = {"summary": "Consultation"}
        with patch.object(
            client._client, "request",
            return_value=mock_http_response({"id": "evt1", "htmlLink": "https://cal/evt1"}),
        ) as mock_req:
            result = client.insert_event("primary", event)

        assert result["id"] == "evt1"
        method, path = mock_req.call_args[0]
        assert method == "POST"
        assert path == "/calendar/v3/calendars/primary/events"
        assert mock_req.call_args[1]["json"] == event
        assert mock_req.call_args[1]["params"] == {"sendUpdates": "all"}

    def test_calendar_id_is_url_encoded(self, client, mock_http_response):
        with patch.object(
            client._client, "request", return_value=mock_http_response({"id": "e"}),
        ) as mock_req:
            client.insert_event("team@group.calendar.google.com", {})
        assert mock_req.call_args[0][1] == (
            "/calendar/v3/calendars/team%40group.calendar.google.com/events"
        )

    def test_error_status_raises_without_retry(self, client, mock_http_response):
        with patch.object(
            client._client, "request",
            return_value=mock_http_response({"error": "invalid_credentials"}, 401),
        ) as mock_req:
            with pytest.raises(GoogleAPIError) as exc_info:
                client.insert_event("primary", {})
        assert exc_info.value.status_code == 401
        assert mock_req.call_count == 1

    def test_server_error_is_not_retried(self, client, mock_http_response):
        with patch.object(
            client._client, "request",
            return_value=mock_http_response({"error": "backendError"}, 503),
        ) as mock_req:
            with pytest.raises(GoogleAPIError):
                client.insert_event("primary", {})
        assert mock_req.call_count == 1

    def test_non_json_success_body_raises(self, client, mock_http_response):
        response = mock_http_response({}, 200)
        response.json.side_effect = ValueError("Expecting value")
        response.text = "<html>upstream proxy</html>"
        with patch.object(client._client, "request", return_value=response):
            with pytest.raises(GoogleAPIError) as exc_info:
                client.insert_event("primary", {})
        assert exc_info.value.status_code == 200

    def test_transport_error_raises(self, client):
        with patch.object(
            client._client, "request", side_effect=httpx.ConnectTimeout("timeout"),
        ):
            with pytest.raises(GoogleAPIError) as exc_info:
                client.insert_event("primary", {})
        assert exc_info.value.status_code is None


class TestSendMessage:
    def test_posts_raw_message(self, client, mock_http_response):
        with patch.object(
            client._client, "request", return_value=mock_http_response({"id": "msg1"}),
        ) as mock_req:
            result = client.send_message("cmF3")
        assert result == {"id": "msg1"}
        assert mock_req.call_args[0] == ("POST", "/gmail/v1/users/me/messages/send")
        assert mock_req.call_args[1]["json"] == {"raw": "cmF3"}


class TestEncodeMessage:
    def test_round_trips_headers_and_body(self, decode_message):
        raw = encode_message(
            to="jane@example.com",
            subject="Appointment Confirmation – regenmed.ai",
            body="Hi Jane,\n\nSee you soon.\n\n— The regenmed.ai Team",
        )
        assert "=" not in raw
        assert "+" not in raw and "/" not in raw

        message = decode_message(raw)
        assert message["To"] == "jane@example.com"
        assert message["From"] == "me"
        assert message["Subject"] == "Appointment Confirmation – regenmed.ai"
        assert message.get_content_type() == "text/plain"
        assert "See you soon." in message.get_content()


class TestClientHeaders:
    def test_bearer_token_header(self, client):
        assert client._client.headers["Authorization"] == "Bearer ya29.test"

    def test_context_manager_closes(self):
        with GoogleWorkspaceClient("t") as c:
            pass
        assert c._client.is_closed
