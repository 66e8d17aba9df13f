"""FastAPI server for the consultation relay.

Run with:
    uvicorn consult_relay.server:app --reload --host 0.0.0.0 --port 3001
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from consult_relay.api.routes import auth_router, router
from consult_relay.chat_relay import ChatRelay
from consult_relay.config import (
    APP_ENV,
    CLIENT_ORIGIN,
    CORS_ORIGINS,
    SERVER_HOST,
    SERVER_PORT,
    SESSION_COOKIE_NAME,
    SESSION_HTTPS_ONLY,
    SESSION_MAX_AGE_SECONDS,
    SESSION_SAME_SITE,
    SESSION_SECRET,
)
from consult_relay.errors import RelayError
from consult_relay.scheduling import SchedulingOrchestrator
from consult_relay.services.google_auth import GoogleAuthManager
from consult_relay.services.session_store import InMemorySessionStore

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise shared collaborators ────────────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the relay's collaborators once and store them in app state.

    Anything already present (tests inject fakes) is left alone.
    """
    state = application.state
    if getattr(state, "session_store", None) is None:
        state.session_store = InMemorySessionStore()
    if getattr(state, "auth_manager", None) is None:
        state.auth_manager = GoogleAuthManager()
    if getattr(state, "scheduler", None) is None:
        state.scheduler = SchedulingOrchestrator(state.auth_manager)
    if getattr(state, "chat_relay", None) is None:
        state.chat_relay = ChatRelay()
    logger.info("Running in %s mode. Client origin: %s", APP_ENV, CLIENT_ORIGIN)
    yield


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Consultation Relay",
    description=(
        "Chat assistant relay that books consultations on Google Calendar "
        "and sends confirmations through Gmail."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET,
    session_cookie=SESSION_COOKIE_NAME,
    max_age=SESSION_MAX_AGE_SECONDS,
    same_site=SESSION_SAME_SITE,
    https_only=SESSION_HTTPS_ONLY,
)

# ── CORS (the chat widget is served from another origin) ────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every request for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Error translation ────────────────────────────────────────────────
@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "?")
    logger.info("[%s] %s → %d: %s", request_id, type(exc).__name__, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    where = ".".join(str(p) for p in errors[0]["loc"][1:]) if errors else ""
    message = f"Invalid request body ({where})." if where else "Invalid request body."
    return JSONResponse(status_code=400, content={"error": message})


# ── Register routes ──────────────────────────────────────────────────
app.include_router(auth_router)
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Consultation Relay",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


if __name__ == "__main__":
    logger.info(
        "Starting relay on %s:%d — authorize Google at http://localhost:%d/auth/google",
        SERVER_HOST, SERVER_PORT, SERVER_PORT,
    )
    uvicorn.run("consult_relay.server:app", host=SERVER_HOST, port=SERVER_PORT, reload=True)
