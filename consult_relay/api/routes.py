"""FastAPI route definitions for the consultation relay.

Two routers are exported:

* ``auth_router`` — the browser-facing OAuth endpoints (``/auth/google``,
  ``/oauth2callback``), mounted at the root because the redirect URI is
  registered with Google.
* ``router`` — the JSON API, mounted under ``/api``.

Collaborators (session store, auth manager, chat relay, orchestrator)
live on ``app.state`` and are created in the server lifespan, which lets
tests swap them out.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse, RedirectResponse

from consult_relay.api.schemas import (
    AuthStatusResponse,
    ChatRequest,
    ChatResponse,
    HealthResponse,
    ScheduleResponse,
)
from consult_relay.config import CLIENT_ORIGIN
from consult_relay.errors import AuthExchangeError, InvalidRequest

logger = logging.getLogger(__name__)

router = APIRouter()
auth_router = APIRouter()

SESSION_KEY = "sid"


def _get_component(request: Request, name: str):
    """Retrieve a collaborator from app state, or 503 while starting up."""
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=503,
            detail="The service is still starting up. Please try again in a moment.",
        )
    return component


def _session_id(request: Request, *, create: bool = False) -> str | None:
    """Return the visitor's session id, issuing one if *create* is set."""
    sid = request.session.get(SESSION_KEY)
    if sid is None and create:
        sid = secrets.token_urlsafe(32)
        request.session[SESSION_KEY] = sid
    return sid


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "?")


# ── OAuth ────────────────────────────────────────────────────────────


@auth_router.get("/auth/google")
async def start_google_auth(request: Request):
    """Redirect the visitor to Google's consent screen."""
    auth = _get_component(request, "auth_manager")
    return RedirectResponse(auth.build_consent_url(), status_code=302)


@auth_router.get("/oauth2callback")
async def google_auth_callback(request: Request, code: str | None = None):
    """Exchange the authorization code and remember the tokens for this visitor."""
    if not code:
        return PlainTextResponse("Authorization code missing.", status_code=400)

    auth = _get_component(request, "auth_manager")
    store = _get_component(request, "session_store")
    try:
        tokens = await asyncio.to_thread(auth.exchange_code, code)
    except AuthExchangeError as exc:
        logger.warning("[%s] Authorization code exchange failed", _request_id(request))
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    store.set_tokens(_session_id(request, create=True), tokens)
    logger.info("[%s] Google authorization complete", _request_id(request))
    return RedirectResponse(CLIENT_ORIGIN, status_code=302)


# ── JSON API ─────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.get("/auth/status", response_model=AuthStatusResponse)
async def auth_status(request: Request):
    """Report whether this visitor's session holds Google tokens."""
    store = _get_component(request, "session_store")
    return AuthStatusResponse(isAuthenticated=store.has_tokens(_session_id(request)))


@router.post("/chat", response_model=ChatResponse)
async def chat(request: Request, body: ChatRequest | None = None):
    """Relay one chat turn to the model.

    The model call blocks, so it runs in the default thread pool to keep
    the event loop free for other visitors.
    """
    if body is None:
        body = ChatRequest()
    if not body.message or not body.message.strip():
        raise InvalidRequest("Message is required.")

    relay = _get_component(request, "chat_relay")
    reply = await asyncio.to_thread(relay.reply, body.turns(), body.message)
    return ChatResponse(reply=reply)


@router.post("/schedule", response_model=ScheduleResponse)
async def schedule(request: Request):
    """Book a consultation on the authorized calendar and email a confirmation.

    The body is read raw: the orchestrator must see an unauthenticated
    request before any field is validated.
    """
    orchestrator = _get_component(request, "scheduler")
    store = _get_component(request, "session_store")

    sid = _session_id(request)
    session = store.get(sid) if sid else None
    tokens = session.tokens if session else None

    payload: Any
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    outcome = await asyncio.to_thread(orchestrator.schedule, tokens, payload)
    logger.info(
        "[%s] Appointment booked: event=%s message=%s",
        _request_id(request), outcome.event_id, outcome.message_id,
    )
    return ScheduleResponse(success=outcome.success, message=outcome.message)
