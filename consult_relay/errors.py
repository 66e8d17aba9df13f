"""Error taxonomy shared by the relay's components.

Each error carries the HTTP status the API surface answers with and a
message that is safe to show to the caller.  Provider detail is logged
where the failure happens, never placed in ``message``.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for every failure the API translates into a response."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class InvalidRequest(RelayError):
    """Malformed or missing caller input."""

    status_code = 400


class Unauthorized(RelayError):
    """The session carries no Google authorization tokens."""

    status_code = 401

    def __init__(
        self,
        message: str = "Authentication required. Server not authorized with Google.",
    ):
        super().__init__(message)


class UpstreamError(RelayError):
    """A model, calendar or mail provider call failed."""

    status_code = 500


class ModelError(UpstreamError):
    """The language-model provider failed or returned nothing."""

    def __init__(self, message: str = "Failed to get response from AI."):
        super().__init__(message)


class AuthExchangeError(RelayError):
    """The OAuth authorization-code exchange failed."""

    status_code = 500

    def __init__(self, message: str = "Authentication failed."):
        super().__init__(message)
