"""Server-side session state keyed by the opaque id held in the cookie.

The browser only ever sees a signed session id.  Everything else (the
Google token bundle) lives behind the ``SessionStore`` interface so the
process-local default can be replaced with a shared store without
touching the routes.

Writes replace the whole ``Session`` value for a key, so two writers for
the same visitor can never leave a half-updated record behind.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Mapping

logger = logging.getLogger(__name__)

AuthorizationTokens = Mapping[str, Any]


@dataclass(frozen=True)
class Session:
    """Per-visitor state.  ``tokens`` is ``None`` until OAuth completes."""

    session_id: str
    tokens: AuthorizationTokens | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.tokens is not None


class SessionStore(ABC):
    """Keyed store for ``Session`` values."""

    @abstractmethod
    def get(self, session_id: str) -> Session | None:
        """Return the session for *session_id*, or ``None``."""

    @abstractmethod
    def set_tokens(self, session_id: str, tokens: AuthorizationTokens) -> Session:
        """Attach *tokens* to the session, overwriting any earlier set."""

    @abstractmethod
    def clear(self, session_id: str) -> bool:
        """Drop the session.  Returns ``True`` if it existed."""

    def has_tokens(self, session_id: str | None) -> bool:
        if not session_id:
            return False
        session = self.get(session_id)
        return session is not None and session.is_authenticated


class InMemorySessionStore(SessionStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def set_tokens(self, session_id: str, tokens: AuthorizationTokens) -> Session:
        with self._lock:
            current = self._sessions.get(session_id) or Session(session_id=session_id)
            updated = replace(current, tokens=dict(tokens))
            self._sessions[session_id] = updated
        logger.info("Session %s…: authorization tokens stored", session_id[:8])
        return updated

    def clear(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
