"""Stateless relay between the chat widget and the language model.

Each call to ``ChatRelay.reply`` sends the directive, the caller's
history and the new user turn to the model and returns its text.
Nothing is kept between calls: the widget owns the transcript and sends
it back every turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Sequence

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, AnyMessage, HumanMessage, SystemMessage

from consult_relay.config import ANTHROPIC_API_KEY, MODEL_NAME
from consult_relay.errors import ModelError
from consult_relay.prompts import ChatPolicy
from consult_relay.services.metrics import metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatTurn:
    """One message of the conversation, tagged by speaker."""

    role: Literal["user", "model"]
    text: str


def _build_llm() -> ChatAnthropic:
    return ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.3,
        max_tokens=1024,
    )


def _to_messages(history: Sequence[ChatTurn]) -> list[AnyMessage]:
    """Convert widget turns to LangChain messages.

    Leading model turns (the widget's canned greeting) are dropped: the
    conversation sent to the model has to open with a user turn.
    """
    messages: list[AnyMessage] = []
    for turn in history:
        if turn.role == "model":
            if not messages:
                continue
            messages.append(AIMessage(content=turn.text))
        else:
            messages.append(HumanMessage(content=turn.text))
    return messages


def _extract_text(content: str | list) -> str:
    """Return the reply text, joining text blocks for structured content."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class ChatRelay:
    """Forwards one chat turn to the model under a fixed directive."""

    def __init__(self, llm: BaseChatModel | None = None, policy: ChatPolicy | None = None):
        self._llm = llm or _build_llm()
        self._policy = policy or ChatPolicy()

    @property
    def policy(self) -> ChatPolicy:
        return self._policy

    def build_messages(self, history: Sequence[ChatTurn], message: str) -> list[AnyMessage]:
        return [
            SystemMessage(content=self._policy.render()),
            *_to_messages(history),
            HumanMessage(content=message),
        ]

    def reply(self, history: Sequence[ChatTurn], message: str) -> str:
        """Return the model's reply to *message* given *history*.

        Raises:
            ModelError: the provider call failed or produced no text.
        """
        messages = self.build_messages(history, message)
        try:
            with metrics.track("anthropic", "chat_invoke"):
                response = self._llm.invoke(messages)
        except Exception as exc:
            logger.exception("Model invocation failed (%d prior turns)", len(history))
            raise ModelError() from exc

        text = _extract_text(getattr(response, "content", None) or "")
        if not text.strip():
            logger.error("Model returned an empty reply")
            raise ModelError()
        return text
