"""
Console Test Harness for SessionController (Functional Core)

Simple console loop to chat with the menu bot before involving the web
surface.
"""

import logging
import sys

from dotenv import load_dotenv

from menuchat.config import ClientConfig, LOG_FORMAT, log_level
from menuchat.core.response_normalizer import ResponseNormalizer
from menuchat.core.session_controller import SessionController
from menuchat.results import IllegalCommand
from menuchat.utils.api_client import ChatAPIClient
from menuchat.utils.display_helpers import render_turn

load_dotenv()

# Configure logging
logging.basicConfig(level=log_level(), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"quit", "exit", "/quit"}


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def print_debug_info(result):
    """Print context after a turn"""
    print("-" * 60)
    reply = result.reply
    print(f"ok: {reply.ok}  kind: {reply.failure_kind.value if reply.failure_kind else '-'}")
    print(f"anchor: {result.anchor_id}  remembered options: {len(result.last_menu_options)}")
    if result.greeting_reset:
        print("context reset by greeting")
    print("-" * 60)


def main():
    """Run console chat"""
    print_separator()
    print("MENU CHAT CLIENT - CONSOLE")
    print_separator()

    try:
        config = ClientConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 1

    client = ChatAPIClient(config)
    _, message = client.test_connection()
    print(f"\nBackend {config.api_base_url}: {message}")

    controller = SessionController(client, ResponseNormalizer(base_url=config.api_base_url))
    debug = "--debug" in sys.argv

    print("\nSay 'hi' to start. Type a number to pick an option, 'quit' to leave.\n")

    while True:
        try:
            user_input = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not user_input:
            continue
        if user_input.lower() in EXIT_COMMANDS:
            break

        result = controller.submit_user_text(user_input)
        if isinstance(result, IllegalCommand):
            print(f"(rejected: {result.reason})")
            continue

        print(render_turn(result.bot_turn))
        if debug:
            print_debug_info(result)

    print_separator()
    print(f"Session {controller.session_id} ended after {len(controller.transcript)} turns")
    print_separator()
    return 0


if __name__ == "__main__":
    sys.exit(main())
