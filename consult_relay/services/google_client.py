"""HTTP client for the Google Calendar v3 and Gmail v1 REST APIs.

A ``GoogleWorkspaceClient`` is built per request from a session's access
credential (see ``GoogleAuthManager.attach``) and closed when the request
is done, so a revoked grant is noticed on the very next call.

Calls are made exactly once: there is no retry and no token refresh.  An
expired access credential surfaces as a 401 from Google and is raised as
``GoogleAPIError`` like any other failure.
"""

from __future__ import annotations

import base64
import logging
from email.message import EmailMessage
from typing import Any
from urllib.parse import quote

import httpx

from consult_relay.config import GOOGLE_API_BASE_URL

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 15.0


class GoogleAPIError(Exception):
    """Raised when a Calendar or Gmail call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


def encode_message(*, to: str, subject: str, body: str, sender: str = "me") -> str:
    """Build a plaintext RFC 2822 message and base64url-encode it for Gmail."""
    msg = EmailMessage()
    msg["To"] = to
    msg["From"] = sender
    msg["Subject"] = subject
    msg.set_content(body)
    return base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii").rstrip("=")


class GoogleWorkspaceClient:
    """Thin wrapper around the Calendar and Gmail endpoints the relay uses."""

    def __init__(self, access_token: str, base_url: str | None = None):
        self._client = httpx.Client(
            base_url=base_url or GOOGLE_API_BASE_URL,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )

    def __enter__(self) -> GoogleWorkspaceClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = self._client.request(method, path, params=params, json=json_body)
        except httpx.HTTPError as exc:
            raise GoogleAPIError(f"Google API request failed: {type(exc).__name__}: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "Google API %s %s failed: status=%d body=%s",
                method, path, response.status_code, response.text,
            )
            raise GoogleAPIError(
                f"Google API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            logger.error("Google API %s %s returned a non-JSON body", method, path)
            raise GoogleAPIError(
                "Google API returned a non-JSON response.", status_code=response.status_code,
            ) from exc

    def insert_event(
        self,
        calendar_id: str,
        event: dict[str, Any],
        *,
        send_updates: str = "all",
    ) -> dict[str, Any]:
        """Create a calendar event and return the event resource.

        ``send_updates="all"`` makes Google email the invite to attendees.
        """
        return self._request(
            "POST",
            f"/calendar/v3/calendars/{quote(calendar_id, safe='')}/events",
            params={"sendUpdates": send_updates},
            json_body=event,
        )

    def send_message(self, raw: str) -> dict[str, Any]:
        """Send a base64url-encoded message as the authorized account."""
        return self._request(
            "POST",
            "/gmail/v1/users/me/messages/send",
            json_body={"raw": raw},
        )
