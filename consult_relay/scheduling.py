"""Appointment scheduling as a LangGraph state machine.

Each ``/api/schedule`` request runs one pass through the graph:

    check_auth → validate → create_event → send_email → finish → END

Every node either advances ``stage`` or records a ``failure``; the
conditional edge after each node sends a failed run straight to END, so
the first unmet precondition stops the flow:

  * no tokens             → ``Unauthorized``   (checked before any field)
  * bad fields / dateTime → ``InvalidRequest``
  * Calendar failure      → ``UpstreamError``  (no email is sent)
  * Gmail failure         → ``UpstreamError``  (the event is NOT rolled back)

Provider calls are attempted once.  Two concurrent requests for the same
session are not serialised and may both create an event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo

from dateutil import parser as dparse
from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from consult_relay.api.schemas import ScheduleRequest, parse_schedule_request
from consult_relay.config import (
    APPOINTMENT_DURATION_MINUTES,
    BRAND_NAME,
    CALENDAR_ID,
    DISPLAY_TIMEZONE,
    REMINDER_EMAIL_MINUTES,
    REMINDER_POPUP_MINUTES,
)
from consult_relay.errors import InvalidRequest, RelayError, Unauthorized, UpstreamError
from consult_relay.services.google_auth import GoogleAuthManager
from consult_relay.services.google_client import GoogleWorkspaceClient, encode_message
from consult_relay.services.metrics import metrics
from consult_relay.services.session_store import AuthorizationTokens

logger = logging.getLogger(__name__)

INVALID_DATETIME = (
    "Invalid dateTime format provided. Please use a standard format (e.g., ISO 8601)."
)
SCHEDULE_FAILED = "Failed to schedule appointment or send confirmation."
SCHEDULE_SUCCEEDED = "Appointment scheduled successfully! Confirmation email sent."


class ScheduleStage(str, Enum):
    RECEIVED = "received"
    AUTH_CHECKED = "auth_checked"
    VALIDATED = "validated"
    CALENDAR_CREATED = "calendar_created"
    EMAIL_SENT = "email_sent"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class SchedulingSettings:
    """Per-deployment constants for the booking flow."""

    calendar_id: str = CALENDAR_ID
    brand: str = BRAND_NAME
    duration_minutes: int = APPOINTMENT_DURATION_MINUTES
    reminder_email_minutes: int = REMINDER_EMAIL_MINUTES
    reminder_popup_minutes: int = REMINDER_POPUP_MINUTES
    display_timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo(DISPLAY_TIMEZONE))


@dataclass(frozen=True)
class AppointmentWindow:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class ScheduleOutcome:
    success: bool
    message: str
    event_id: str | None = None
    event_link: str | None = None
    message_id: str | None = None


class ScheduleState(TypedDict, total=False):
    """State flowing through the scheduling graph for one request."""

    tokens: AuthorizationTokens | None
    payload: Any
    stage: ScheduleStage
    request: ScheduleRequest
    window: AppointmentWindow
    client: GoogleWorkspaceClient
    event: dict[str, Any]
    message_id: str
    failure: RelayError


# ── Pure helpers ─────────────────────────────────────────────────────


def parse_instant(value: str, tz: ZoneInfo) -> datetime:
    """Parse an ISO 8601 or common human-readable string into an aware datetime.

    Naive values are taken to be in *tz*.
    """
    try:
        dt = dparse.isoparse(value)
    except (ValueError, OverflowError):
        try:
            dt = dparse.parse(value)
        except (ValueError, OverflowError):
            raise InvalidRequest(INVALID_DATETIME) from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


def appointment_window(start: datetime, duration_minutes: int) -> AppointmentWindow:
    return AppointmentWindow(start=start, end=start + timedelta(minutes=duration_minutes))


def format_when(dt: datetime, tz: ZoneInfo) -> str:
    """Format as 'Thursday, May 1, 2025 at 10:00 AM' in *tz*."""
    local = dt.astimezone(tz)
    hour = local.hour % 12 or 12
    return f"{local:%A, %B} {local.day}, {local.year} at {hour}:{local:%M %p}"


def build_event(
    request: ScheduleRequest, window: AppointmentWindow, settings: SchedulingSettings,
) -> dict[str, Any]:
    return {
        "summary": f"Consultation: {request.name} - {settings.brand}",
        "description": (
            "Prospective client consultation requested via chatbot.\n\n"
            f"Name: {request.name}\n"
            f"Email: {request.email}\n"
            f"Phone: {request.phone or 'Not provided'}"
        ),
        "start": {"dateTime": window.start.isoformat()},
        "end": {"dateTime": window.end.isoformat()},
        "attendees": [{"email": request.email}],
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": settings.reminder_email_minutes},
                {"method": "popup", "minutes": settings.reminder_popup_minutes},
            ],
        },
    }


def build_confirmation(
    request: ScheduleRequest, window: AppointmentWindow, settings: SchedulingSettings,
) -> tuple[str, str]:
    """Return the (subject, body) of the confirmation email."""
    subject = f"Appointment Confirmation – {settings.brand}"
    body = (
        f"Hi {request.name},\n\n"
        f"Thank you for scheduling an appointment with {settings.brand}. "
        f"We look forward to speaking with you on "
        f"{format_when(window.start, settings.display_timezone)}.\n\n"
        "If you have any questions before the meeting, feel free to reply to this email.\n\n"
        f"— The {settings.brand} Team"
    )
    return subject, body


def _fail(failure: RelayError) -> dict[str, Any]:
    return {"failure": failure, "stage": ScheduleStage.FAILED}


def _advance_unless_failed(next_node: str):
    def route(state: ScheduleState) -> str:
        return END if state.get("failure") else next_node

    return route


# ── Orchestrator ────────────────────────────────────────────────────


class SchedulingOrchestrator:
    """Runs the authorization gate, validation, calendar and email steps."""

    def __init__(
        self,
        auth: GoogleAuthManager,
        settings: SchedulingSettings | None = None,
    ):
        self._auth = auth
        self._settings = settings or SchedulingSettings()
        self._graph = self._build_graph()

    @property
    def settings(self) -> SchedulingSettings:
        return self._settings

    # ── Nodes ────────────────────────────────────────────────────────

    def _check_auth(self, state: ScheduleState) -> dict:
        if not state.get("tokens"):
            return _fail(Unauthorized())
        return {"stage": ScheduleStage.AUTH_CHECKED}

    def _validate(self, state: ScheduleState) -> dict:
        tz = self._settings.display_timezone
        try:
            request = parse_schedule_request(state.get("payload"))
            start = parse_instant(request.date_time, tz)
            try:
                window = appointment_window(start, self._settings.duration_minutes)
                format_when(window.start, tz)
                format_when(window.end, tz)
            except OverflowError:
                raise InvalidRequest(INVALID_DATETIME) from None
        except InvalidRequest as exc:
            logger.info("Schedule request rejected: %s", exc.message)
            return _fail(exc)
        return {
            "request": request,
            "window": window,
            "stage": ScheduleStage.VALIDATED,
        }

    def _create_event(self, state: ScheduleState) -> dict:
        request, window = state["request"], state["window"]
        try:
            client = self._auth.attach(state["tokens"])
        except UpstreamError as exc:
            logger.error("Cannot build Google client: %s", exc.message)
            return _fail(UpstreamError(SCHEDULE_FAILED))

        event_body = build_event(request, window, self._settings)
        try:
            with metrics.track("google_calendar", "events.insert"):
                event = client.insert_event(self._settings.calendar_id, event_body)
        except Exception:
            logger.exception("Calendar event creation failed for %s", request.email)
            client.close()
            return _fail(UpstreamError(SCHEDULE_FAILED))

        logger.info("Calendar event created: %s", event.get("htmlLink") or event.get("id"))
        return {"client": client, "event": event, "stage": ScheduleStage.CALENDAR_CREATED}

    def _send_email(self, state: ScheduleState) -> dict:
        request, window, event = state["request"], state["window"], state["event"]
        subject, body = build_confirmation(request, window, self._settings)
        client = state["client"]
        try:
            with metrics.track("gmail", "messages.send"):
                sent = client.send_message(
                    encode_message(to=request.email, subject=subject, body=body),
                )
        except Exception:
            logger.exception(
                "Confirmation email to %s failed; calendar event %s was kept",
                request.email, event.get("id"),
            )
            return _fail(UpstreamError(SCHEDULE_FAILED))
        finally:
            client.close()

        logger.info("Confirmation email sent: %s", sent.get("id"))
        return {"message_id": sent.get("id"), "stage": ScheduleStage.EMAIL_SENT}

    def _finish(self, state: ScheduleState) -> dict:
        return {"stage": ScheduleStage.SUCCEEDED}

    # ── Graph assembly ───────────────────────────────────────────────

    def _build_graph(self):
        graph = StateGraph(ScheduleState)
        graph.add_node("check_auth", self._check_auth)
        graph.add_node("validate", self._validate)
        graph.add_node("create_event", self._create_event)
        graph.add_node("send_email", self._send_email)
        graph.add_node("finish", self._finish)

        graph.set_entry_point("check_auth")
        for node, next_node in (
            ("check_auth", "validate"),
            ("validate", "create_event"),
            ("create_event", "send_email"),
            ("send_email", "finish"),
        ):
            graph.add_conditional_edges(
                node, _advance_unless_failed(next_node), {next_node: next_node, END: END},
            )
        graph.add_edge("finish", END)
        return graph.compile()

    # ── Public API ───────────────────────────────────────────────────

    def run(self, tokens: AuthorizationTokens | None, payload: Any) -> ScheduleState:
        """Run the graph and return its final state (failures included).

        The per-request Google client is closed by the node that last uses it.
        """
        initial: ScheduleState = {
            "tokens": tokens, "payload": payload, "stage": ScheduleStage.RECEIVED,
        }
        try:
            return self._graph.invoke(initial)
        except Exception:
            logger.exception("Scheduling run aborted")
            return {**initial, **_fail(UpstreamError(SCHEDULE_FAILED))}

    def schedule(self, tokens: AuthorizationTokens | None, payload: Any) -> ScheduleOutcome:
        """Book the appointment described by *payload*.

        Raises:
            Unauthorized: *tokens* is empty.
            InvalidRequest: a field is missing or malformed.
            UpstreamError: Calendar or Gmail rejected the call.
        """
        final = self.run(tokens, payload)
        failure = final.get("failure")
        if failure is not None:
            raise failure

        event = final["event"]
        return ScheduleOutcome(
            success=True,
            message=SCHEDULE_SUCCEEDED,
            event_id=event.get("id"),
            event_link=event.get("htmlLink"),
            message_id=final.get("message_id"),
        )
