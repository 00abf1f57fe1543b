"""CLI entry point for trying the receptionist without a phone.

Each line you type is handled as an inbound SMS from ``--phone``; replies
that would be texted are printed instead.  Calendar, lead sheet and model
calls are real, so the usual configuration must be present.

Usage:
    python -m sms_receptionist.main                  # quiet
    python -m sms_receptionist.main --debug          # show API calls
    python -m sms_receptionist.main --phone +15550001111
"""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

from sms_receptionist import config
from sms_receptionist.dispatcher import Outcome, ToolDispatcher
from sms_receptionist.services.calendar_client import get_calendar_client
from sms_receptionist.services.completion import CompletionService
from sms_receptionist.services.conversation_store import ConversationStore
from sms_receptionist.services.messaging import MessagingService, truncate_sms
from sms_receptionist.services.sheets_client import get_sheets_client

logger = logging.getLogger(__name__)

DEFAULT_PHONE = "+15555550100"


class ConsoleMessaging(MessagingService):
    """Prints outbound SMS instead of sending them."""

    def __init__(self, max_length: int = config.SMS_MAX_LENGTH) -> None:
        self._max_length = max_length

    def send(self, to: str, body: str) -> str:
        print(f"\nAiden -> {to}: {truncate_sms(body, self._max_length)}\n")
        return "console"


def _configure_logging(debug: bool = False) -> None:
    """WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("googleapiclient").setLevel(logging.WARNING)
    logging.getLogger("sms_receptionist").setLevel(logging.DEBUG if debug else logging.INFO)


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="SMS receptionist CLI")
    parser.add_argument("--debug", action="store_true", help="Show all log messages")
    parser.add_argument("--phone", default=DEFAULT_PHONE, help="Customer number to simulate")
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  SMS Receptionist - CLI Chat")
    print("=" * 60)
    print(f"  Texting as {args.phone}.")
    print("  Commands: 'quit' to exit, 'new' to forget this conversation.")
    print("=" * 60 + "\n")

    store = ConversationStore(history_limit=config.HISTORY_LIMIT)
    dispatcher = ToolDispatcher(
        store=store,
        completion=CompletionService(),
        calendar=get_calendar_client(),
        leads=get_sheets_client(),
        messaging=ConsoleMessaging(),
    )

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
            store.clear_history(args.phone)
            store.clear_pending_hold(args.phone)
            print("\n>> Conversation cleared.\n")
            continue

        result = dispatcher.handle_message(args.phone, user_input)
        if result.outcome is not Outcome.OK:
            print(f"   [{result.outcome.value}]")


if __name__ == "__main__":
    main()
