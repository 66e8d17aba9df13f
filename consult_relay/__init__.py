"""Consultation relay — chat assistant backend that books consultations.

Architecture Overview
=====================

A website visitor chats with an AI assistant and, through that
conversation, books a consultation on the operator's Google Calendar with
an automatic confirmation email sent through Gmail.

1. **Authorization** — the visitor authorizes a Google account once
   (``/auth/google`` → ``/oauth2callback``).  The token bundle is kept
   server-side in a ``SessionStore`` keyed by an opaque id that travels in
   a signed, HTTP-only cookie.

2. **Chat** — every turn is relayed statelessly: the widget sends the
   transcript so far and the relay forwards it, behind a fixed directive,
   to Claude via LangChain.

3. **Scheduling** — a LangGraph state machine checks the session's tokens,
   validates the request, creates the calendar event, then sends the
   confirmation email.  Any step can fail the run; a created event is never
   rolled back.

Key Design Decisions
--------------------
- Tokens are never refreshed; an expired access credential fails the
  next Calendar/Gmail call with a 500.
- Each provider call is attempted exactly once.
- The directive and booking constants are configuration
  (``ChatPolicy``, ``SchedulingSettings``), not literals.

Package Structure
-----------------
- ``consult_relay/config.py`` — configuration from environment variables
- ``consult_relay/errors.py`` — error taxonomy mapped to HTTP statuses
- ``consult_relay/prompts.py`` — assistant directive (``ChatPolicy``)
- ``consult_relay/chat_relay.py`` — model relay
- ``consult_relay/scheduling.py`` — scheduling state machine
- ``consult_relay/server.py`` — FastAPI application
- ``consult_relay/main.py`` — CLI chat interface
- ``consult_relay/services/`` — session store, Google OAuth and REST clients, metrics
- ``consult_relay/api/`` — FastAPI routes and Pydantic schemas
"""
