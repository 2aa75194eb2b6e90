"""The UI seen from the session layer.

Rendering is someone else's job. The session layer only needs a
``ChatView`` that can show a message, show or hide a busy indicator,
disable input, navigate away and show a generic error.
"""

from __future__ import annotations

import enum
import logging
import re
from typing import Callable, Protocol

from lp0chat.session.state import ConversationState, ConversationStatus, Transition

logger = logging.getLogger(__name__)

DEFAULT_LINE_BREAK = "<br />"

# Escaped newlines as they arrive from the agent: "\\n" and "\n" written out.
_ESCAPED_NEWLINE = re.compile(r"\\{1,2}n")


class MessageRole(str, enum.Enum):
    USER = "user"
    BOT = "bot"


class ChatView(Protocol):
    """Interface the session layer drives."""

    def append_or_replace_message(
        self, role: MessageRole, text: str, *, replace: bool = False
    ) -> None:
        """Append *text* to the transcript, or replace the transcript with it."""
        ...

    def set_busy(self, busy: bool) -> None:
        """Show or hide the "thinking" indicator."""
        ...

    def disable_input(self) -> None:
        """Permanently disable user input for this session."""
        ...

    def navigate(self, url: str) -> None:
        """Leave the page for *url*."""
        ...

    def show_error(self, text: str) -> None:
        """Show a generic error state."""
        ...


def format_message(text: str, line_break: str = DEFAULT_LINE_BREAK) -> str:
    """Turn escaped and real newlines into presentation line breaks."""
    text = _ESCAPED_NEWLINE.sub("\n", text)
    return line_break.join(text.split("\n"))


def bind_view(state: ConversationState, view: ChatView) -> Callable[[], None]:
    """Mirror conversation transitions onto *view*.

    Returns the unsubscribe callable.
    """

    def on_transition(transition: Transition) -> None:
        if transition.current is ConversationStatus.AWAITING_REPLY:
            view.set_busy(True)
        elif transition.current is ConversationStatus.IDLE:
            view.set_busy(False)
        elif transition.current is ConversationStatus.HUNGUP:
            view.set_busy(False)
            view.disable_input()

    return state.subscribe(on_transition)
