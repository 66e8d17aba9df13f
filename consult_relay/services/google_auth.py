"""Google OAuth 2.0 authorization-code flow.

``GoogleAuthManager`` owns the three steps the relay needs:

1. ``build_consent_url`` — where ``/auth/google`` redirects the visitor.
2. ``exchange_code`` — trades the ``code`` from ``/oauth2callback`` for a
   token bundle, which the caller stores in the visitor's session.
3. ``attach`` — wraps a stored bundle into a per-request
   ``GoogleWorkspaceClient``.

Both OAuth steps go through ``google_auth_oauthlib.flow.Flow``.  A fresh
``Flow`` is built per call with PKCE disabled and a fixed ``state`` (the
widget origin), so the consent URL is stable and the callback does not
depend on the object that produced it.

Offline access with a forced consent prompt is requested so Google always
issues a refresh credential, but no refresh is performed: an expired
access credential makes the next Calendar/Gmail call fail.
"""

from __future__ import annotations

import logging
from typing import Any

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from consult_relay.config import (
    CLIENT_ORIGIN,
    GOOGLE_AUTH_URI,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REDIRECT_URI,
    GOOGLE_TOKEN_URI,
)
from consult_relay.errors import AuthExchangeError, UpstreamError
from consult_relay.services.google_client import REQUEST_TIMEOUT_SECONDS, GoogleWorkspaceClient
from consult_relay.services.metrics import metrics
from consult_relay.services.session_store import AuthorizationTokens

logger = logging.getLogger(__name__)

GOOGLE_SCOPES: tuple[str, ...] = (
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/gmail.send",
)


def credentials_to_tokens(creds: Credentials) -> dict[str, Any]:
    """Flatten OAuth credentials into the bundle kept in the session store."""
    return {
        "access_token": creds.token,
        "refresh_token": creds.refresh_token,
        "token_uri": creds.token_uri,
        "scopes": list(creds.scopes) if creds.scopes else [],
        "expiry": creds.expiry.isoformat() if creds.expiry else None,
    }


class GoogleAuthManager:
    """Builds consent URLs, exchanges codes and attaches stored tokens."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        *,
        scopes: tuple[str, ...] = GOOGLE_SCOPES,
        state: str | None = None,
    ):
        self._client_id = client_id or GOOGLE_CLIENT_ID
        self._client_secret = client_secret or GOOGLE_CLIENT_SECRET
        self._redirect_uri = redirect_uri or GOOGLE_REDIRECT_URI
        self._scopes = scopes
        self._state = state or CLIENT_ORIGIN

    def _build_flow(self) -> Flow:
        client_config = {
            "web": {
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [self._redirect_uri],
            },
        }
        return Flow.from_client_config(
            client_config,
            scopes=list(self._scopes),
            redirect_uri=self._redirect_uri,
            autogenerate_code_verifier=False,
        )

    def build_consent_url(self) -> str:
        auth_url, _ = self._build_flow().authorization_url(
            access_type="offline",
            prompt="consent",
            state=self._state,
        )
        return auth_url

    def exchange_code(self, code: str) -> AuthorizationTokens:
        """Exchange an authorization code for a token bundle.

        Raises:
            AuthExchangeError: the code was rejected or Google was unreachable.
        """
        flow = self._build_flow()
        try:
            with metrics.track("google_oauth", "token"):
                flow.fetch_token(code=code, timeout=REQUEST_TIMEOUT_SECONDS)
        except Exception as exc:
            logger.error("Authorization code exchange failed: %s: %s", type(exc).__name__, exc)
            raise AuthExchangeError() from exc

        tokens = credentials_to_tokens(flow.credentials)
        if not tokens["access_token"]:
            logger.error("Token endpoint returned no access credential")
            raise AuthExchangeError()
        return tokens

    def attach(self, tokens: AuthorizationTokens) -> GoogleWorkspaceClient:
        access_token = tokens.get("access_token")
        if not access_token:
            raise UpstreamError("Stored authorization carries no access credential.")
        return GoogleWorkspaceClient(access_token)
