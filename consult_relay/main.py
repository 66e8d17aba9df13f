"""CLI entry point for trying the assistant without the web widget.

The loop keeps the transcript itself and sends it with every turn, the
same way the widget talks to ``/api/chat``.  Scheduling needs a browser
session and is not available here.

Usage:
    python -m consult_relay.main            # normal mode (quiet)
    python -m consult_relay.main --debug    # debug mode (shows API calls)
"""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

from consult_relay.chat_relay import ChatRelay, ChatTurn
from consult_relay.errors import ModelError

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("consult_relay").setLevel(logging.DEBUG if debug else logging.INFO)


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Consultation assistant CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    relay = ChatRelay()
    name = relay.policy.assistant_name
    greeting = (
        f"Hi there! I am {name}, the AI assistant for {relay.policy.brand}. "
        "How can I help you explore our services or schedule a consultation?"
    )

    print("\n" + "=" * 60)
    print(f"  {relay.policy.brand} assistant - CLI Chat")
    print("=" * 60)
    print("  Commands: 'quit' to exit, 'new' for a new conversation.")
    print("=" * 60 + "\n")

    history: list[ChatTurn] = [ChatTurn(role="model", text=greeting)]
    print(f"{name}: {greeting}\n")

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nGoodbye!")
            break

        if not user_input:
            continue
        if user_input.lower() in ("exit", "quit", "q"):
            print("\nGoodbye!")
            break
        if user_input.lower() == "new":
            history = [ChatTurn(role="model", text=greeting)]
            print(f"\n>> New conversation\n\n{name}: {greeting}\n")
            continue

        try:
            reply = relay.reply(history, user_input)
        except ModelError:
            print(f"\n{name}: Sorry, I couldn't reach the model. Please try again.\n")
            continue

        history.append(ChatTurn(role="user", text=user_input))
        history.append(ChatTurn(role="model", text=reply))
        print(f"\n{name}: {reply}\n")


if __name__ == "__main__":
    main()
