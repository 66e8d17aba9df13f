"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from consult_relay.chat_relay import ChatTurn
from consult_relay.errors import InvalidRequest

MISSING_SCHEDULE_FIELDS = "Missing required scheduling information (name, email, dateTime)."
INVALID_EMAIL = "Invalid email address provided."

# RFC 5322-ish pattern for common real-world addresses
_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)


# ── Chat ─────────────────────────────────────────────────────────────


class HistoryPart(BaseModel):
    text: str = ""


class HistoryTurn(BaseModel):
    """One transcript entry as the widget sends it."""

    role: Literal["user", "model"]
    parts: list[HistoryPart] = Field(default_factory=list)

    def to_turn(self) -> ChatTurn:
        return ChatTurn(role=self.role, text="".join(p.text for p in self.parts))


class ChatRequest(BaseModel):
    """Incoming chat message plus the transcript so far.

    ``message`` is optional here so that an absent message is answered
    with the same 400 as an empty one.
    """

    message: str | None = None
    history: list[HistoryTurn] | None = Field(default_factory=list)

    @field_validator("history")
    @classmethod
    def _null_history_is_empty(cls, value: list[HistoryTurn] | None) -> list[HistoryTurn]:
        return value or []

    def turns(self) -> list[ChatTurn]:
        return [t.to_turn() for t in self.history or []]


class ChatResponse(BaseModel):
    reply: str


# ── Scheduling ──────────────────────────────────────────────────────


class ScheduleRequest(BaseModel):
    """Appointment details collected by the assistant."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=1, max_length=320)
    phone: str | None = Field(default=None, max_length=50)
    date_time: str = Field(..., min_length=1, alias="dateTime")

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not _EMAIL_RE.match(value):
            raise ValueError(INVALID_EMAIL)
        return value

    @field_validator("phone")
    @classmethod
    def _blank_phone_is_none(cls, value: str | None) -> str | None:
        return value or None


def _is_missing(error: dict[str, Any]) -> bool:
    return error["type"] in ("missing", "string_too_short") or error.get("input") is None


def parse_schedule_request(payload: Any) -> ScheduleRequest:
    """Validate a raw request body into a ``ScheduleRequest``.

    Raises:
        InvalidRequest: naming the missing or malformed field.
    """
    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object.")
    try:
        return ScheduleRequest.model_validate(payload)
    except ValidationError as exc:
        errors = exc.errors()
        if any(_is_missing(e) for e in errors):
            raise InvalidRequest(MISSING_SCHEDULE_FIELDS) from None
        field = errors[0]["loc"][0] if errors and errors[0]["loc"] else "body"
        if field == "email":
            raise InvalidRequest(INVALID_EMAIL) from None
        raise InvalidRequest(f"Invalid value for '{field}'.") from None


class ScheduleResponse(BaseModel):
    success: bool = True
    message: str


# ── Misc ────────────────────────────────────────────────────────────


class AuthStatusResponse(BaseModel):
    isAuthenticated: bool


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "consult-relay"
