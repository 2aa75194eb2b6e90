"""lp0chat CLI — chat with an agent from the terminal.

Usage:
    lp0chat chat --bot-id support --customer-id acme --show-history
    lp0chat whoami                    # Print this device's public key
    lp0chat reset-identity            # Forget the stored seed

The terminal stands in for the embedded widget: each line typed is sent,
each agent reply is printed.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from lp0chat.config.settings import settings
from lp0chat.config.widget import WidgetConfig
from lp0chat.identity.store import IdentityStore, JsonFileStorage
from lp0chat.session.view import MessageRole

logger = logging.getLogger(__name__)

QUIT_COMMANDS = {"/quit", "/exit"}


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="lp0chat",
        description="lp0chat — terminal chat over the agent broker",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    subparsers = parser.add_subparsers(dest="command")

    # chat
    chat = subparsers.add_parser("chat", help="Start an interactive chat session")
    chat.add_argument("--bot-id", required=True, help="Agent to talk to")
    chat.add_argument("--customer-id", required=True, help="Customer the agent belongs to")
    chat.add_argument("--show-history", action="store_true", help="Keep the whole transcript")
    chat.add_argument("--hide-start", action="store_true", help="Hide the /start echo")
    chat.add_argument("--hangup-url", default="", help="Where to go after a hangup")
    chat.add_argument("--hangup-wait", type=int, default=0, help="Delay before redirect (ms)")
    chat.add_argument("--email", default="", help="User email passed to the agent")
    chat.add_argument("--first-name", default="", help="User first name")
    chat.add_argument("--last-name", default="", help="User last name")

    # whoami
    subparsers.add_parser("whoami", help="Show this device's public key")

    # reset-identity
    subparsers.add_parser("reset-identity", help="Delete the stored identity seed")

    args = parser.parse_args()

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Dispatch
    try:
        if args.command == "chat":
            asyncio.run(_cmd_chat(args))
        elif args.command == "whoami":
            _cmd_whoami()
        elif args.command == "reset-identity":
            _cmd_reset_identity()
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)
    except Exception as exc:
        logger.error("Error: %s", exc)
        if args.verbose:
            raise
        sys.exit(1)


# ---------------------------------------------------------------------------
# Terminal view
# ---------------------------------------------------------------------------


class TerminalView:
    """ChatView that prints to stdout."""

    def __init__(self, out=None) -> None:
        self._out = out or sys.stdout
        self.input_disabled = False
        self.ended = asyncio.Event()
        self.finished = asyncio.Event()

    def _print(self, text: str) -> None:
        print(text, file=self._out, flush=True)

    def append_or_replace_message(
        self, role: MessageRole, text: str, *, replace: bool = False
    ) -> None:
        prefix = "you" if role is MessageRole.USER else "bot"
        self._print(f"{prefix}> {text}")

    def set_busy(self, busy: bool) -> None:
        if busy:
            self._print("   ...thinking")

    def disable_input(self) -> None:
        self.input_disabled = True
        self.ended.set()
        self._print("-- conversation ended --")

    def navigate(self, url: str) -> None:
        self._print(f"-- redirect: {url} --")
        self.finished.set()

    def show_error(self, text: str) -> None:
        print(text, file=sys.stderr, flush=True)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _read_line() -> str | None:
    """Read one stdin line without blocking the event loop."""
    loop = asyncio.get_running_loop()
    fd = sys.stdin.fileno()
    future: asyncio.Future[str] = loop.create_future()

    def on_readable() -> None:
        loop.remove_reader(fd)
        if not future.done():
            future.set_result(sys.stdin.readline())

    loop.add_reader(fd, on_readable)
    try:
        line = await future
    finally:
        loop.remove_reader(fd)
    return line or None


async def _cmd_chat(args: argparse.Namespace) -> None:
    """Run an interactive chat until /quit, EOF or hangup."""
    from lp0chat.widget import ChatWidget

    config = WidgetConfig(
        bot_id=args.bot_id,
        customer_id=args.customer_id,
        show_history=args.show_history,
        hide_start=args.hide_start,
        hangup_url=args.hangup_url,
        hangup_wait_ms=args.hangup_wait,
        user_email=args.email,
        first_name=args.first_name,
        last_name=args.last_name,
    )
    view = TerminalView()
    terminal_settings = settings.model_copy(update={"LINE_BREAK": "\n"})

    async with ChatWidget(config, view, settings=terminal_settings) as widget:
        print(f"Connected as {widget.context.identity.public_key}. Type /quit to leave.")
        ended = asyncio.ensure_future(view.ended.wait())
        try:
            while not view.input_disabled:
                reader = asyncio.ensure_future(_read_line())
                done, _ = await asyncio.wait(
                    {reader, ended}, return_when=asyncio.FIRST_COMPLETED
                )
                if reader not in done:
                    reader.cancel()
                    break
                line = reader.result()
                if line is None or line.strip() in QUIT_COMMANDS:
                    break
                text = line.rstrip("\n")
                if text.strip():
                    await widget.send(text)
        finally:
            ended.cancel()

        if view.input_disabled and config.redirects_on_hangup:
            await view.finished.wait()


def _cmd_whoami() -> None:
    """Print the persisted public key, creating the identity if needed."""
    store = IdentityStore(JsonFileStorage(settings.STORAGE_PATH))
    print(store.get_or_create_identity().public_key)


def _cmd_reset_identity() -> None:
    """Delete the stored seed so the next session creates a new identity."""
    store = IdentityStore(JsonFileStorage(settings.STORAGE_PATH))
    store.clear()
    print(f"Identity cleared from {settings.STORAGE_PATH}")
