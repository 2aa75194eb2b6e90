"""Conversation state machine.

    IDLE ──user_sent──▶ AWAITING_REPLY ──reply_received──▶ IDLE
      │                      │
      └──hangup_received─────┴──────────────────────────▶ HUNGUP (terminal)

``reply_loop_failed`` and ``send_failed`` return AWAITING_REPLY to IDLE
when no reply can arrive any more, so a busy indicator is never left on
with nothing left to clear it.

Observers subscribe to transitions instead of being called back by
method reference:

    state = ConversationState()
    unsubscribe = state.subscribe(lambda t: print(t.previous, "->", t.current))
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable

from lp0chat.errors import ConversationEndedError

logger = logging.getLogger(__name__)


class ConversationStatus(str, enum.Enum):
    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"
    HUNGUP = "hungup"


@dataclass(frozen=True)
class Transition:
    previous: ConversationStatus
    current: ConversationStatus
    reason: str


Observer = Callable[[Transition], None]


class ConversationState:
    """Tracks where the conversation is and notifies observers on change.

    Only the session router and the widget's send path mutate it; under
    asyncio they never interleave inside a transition, so no lock is
    taken.
    """

    def __init__(self) -> None:
        self._status = ConversationStatus.IDLE
        self._observers: list[Observer] = []
        self.history: list[Transition] = []

    @property
    def status(self) -> ConversationStatus:
        return self._status

    @property
    def is_hungup(self) -> bool:
        return self._status is ConversationStatus.HUNGUP

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer*; returns a callable that removes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # -- Events --------------------------------------------------------------

    def user_sent(self) -> Transition | None:
        if self.is_hungup:
            raise ConversationEndedError("The conversation has ended")
        if self._status is ConversationStatus.IDLE:
            return self._move(ConversationStatus.AWAITING_REPLY, "user_sent")
        return None

    def reply_received(self) -> Transition | None:
        if self._status is ConversationStatus.AWAITING_REPLY:
            return self._move(ConversationStatus.IDLE, "reply_received")
        return None

    def hangup_received(self) -> Transition | None:
        if self.is_hungup:
            return None
        return self._move(ConversationStatus.HUNGUP, "hangup_received")

    def reply_loop_failed(self) -> Transition | None:
        if self._status is ConversationStatus.AWAITING_REPLY:
            return self._move(ConversationStatus.IDLE, "reply_loop_failed")
        return None

    def send_failed(self) -> Transition | None:
        if self._status is ConversationStatus.AWAITING_REPLY:
            return self._move(ConversationStatus.IDLE, "send_failed")
        return None

    # -- Internals -----------------------------------------------------------

    def _move(self, target: ConversationStatus, reason: str) -> Transition:
        transition = Transition(previous=self._status, current=target, reason=reason)
        self._status = target
        self.history.append(transition)
        logger.debug("Conversation %s -> %s (%s)",
                     transition.previous.value, target.value, reason)
        for observer in list(self._observers):
            try:
                observer(transition)
            except Exception:
                logger.exception("Conversation observer %r failed", observer)
        return transition
