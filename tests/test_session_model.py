"""Tests for session ids, subject naming, text formatting and the FSM."""

from __future__ import annotations

import re

import pytest

from lp0chat.errors import ConversationEndedError
from lp0chat.session.state import ConversationState, ConversationStatus, Transition
from lp0chat.session.subjects import Session, SessionSubjects, new_session_id
from lp0chat.session.view import bind_view, format_message
from tests.conftest import RecordingView


# ====================================================================
# Session ids and subjects
# ====================================================================


class TestSubjects:
    def test_session_id_is_time_prefixed(self) -> None:
        assert re.fullmatch(r"\d{10,}_[0-9a-f-]{36}", new_session_id())

    def test_session_ids_unique(self) -> None:
        assert len({new_session_id() for _ in range(50)}) == 50

    def test_subject_patterns(self) -> None:
        session = Session(session_id="1700000000_abc", public_key="UPK",
                          bot_id="bot7", customer_id="cust9")
        subjects = SessionSubjects.for_session(session)
        assert subjects.user_echo == "user.UPK.1700000000_abc.user"
        assert subjects.agent_reply == "user.UPK.1700000000_abc.bot.bot7"
        assert subjects.outbound == "service.chat.UPK.1700000000_abc.bot7.cust9"

    @pytest.mark.parametrize("bot_id,customer_id", [("a", "b"), ("support", "acme-co"), ("x1", "y2")])
    def test_all_subjects_share_scope(self, bot_id: str, customer_id: str) -> None:
        session = Session.start(public_key="UKEY", bot_id=bot_id, customer_id=customer_id)
        subjects = SessionSubjects.for_session(session)
        scope = f".{session.public_key}.{session.session_id}."
        assert scope in subjects.user_echo
        assert scope in subjects.agent_reply
        assert scope in subjects.outbound


# ====================================================================
# Formatting
# ====================================================================


class TestFormatMessage:
    def test_real_newlines(self) -> None:
        assert format_message("a\nb") == "a<br />b"

    def test_escaped_newlines(self) -> None:
        assert format_message("a\\nb\\\\nc") == "a<br />b<br />c"

    def test_custom_line_break(self) -> None:
        assert format_message("a\\nb", line_break="\n") == "a\nb"

    def test_plain_text_untouched(self) -> None:
        assert format_message("Hello there") == "Hello there"


# ====================================================================
# ConversationState
# ====================================================================


class TestConversationState:
    def test_initial_idle(self) -> None:
        assert ConversationState().status is ConversationStatus.IDLE

    def test_send_then_reply(self) -> None:
        state = ConversationState()
        state.user_sent()
        assert state.status is ConversationStatus.AWAITING_REPLY
        state.reply_received()
        assert state.status is ConversationStatus.IDLE

    def test_hangup_from_awaiting(self) -> None:
        state = ConversationState()
        state.user_sent()
        state.hangup_received()
        assert state.status is ConversationStatus.HUNGUP

    def test_hangup_from_idle(self) -> None:
        state = ConversationState()
        t = state.hangup_received()
        assert t == Transition(ConversationStatus.IDLE, ConversationStatus.HUNGUP, "hangup_received")

    def test_hungup_is_terminal(self) -> None:
        state = ConversationState()
        state.hangup_received()
        with pytest.raises(ConversationEndedError):
            state.user_sent()
        assert state.reply_received() is None
        assert state.reply_loop_failed() is None
        assert state.send_failed() is None
        assert state.hangup_received() is None
        assert state.status is ConversationStatus.HUNGUP

    def test_repeated_send_stays_awaiting(self) -> None:
        state = ConversationState()
        state.user_sent()
        assert state.user_sent() is None
        assert state.status is ConversationStatus.AWAITING_REPLY

    def test_unsolicited_reply_no_transition(self) -> None:
        state = ConversationState()
        assert state.reply_received() is None
        assert state.history == []

    def test_loop_failure_clears_wait(self) -> None:
        state = ConversationState()
        state.user_sent()
        state.reply_loop_failed()
        assert state.status is ConversationStatus.IDLE

    def test_observers_and_unsubscribe(self) -> None:
        state = ConversationState()
        seen: list[Transition] = []
        unsubscribe = state.subscribe(seen.append)
        state.user_sent()
        unsubscribe()
        state.reply_received()
        assert [t.current for t in seen] == [ConversationStatus.AWAITING_REPLY]

    def test_failing_observer_does_not_block_others(self) -> None:
        state = ConversationState()
        seen: list[Transition] = []

        def broken(_: Transition) -> None:
            raise RuntimeError("boom")

        state.subscribe(broken)
        state.subscribe(seen.append)
        state.user_sent()
        assert len(seen) == 1


class TestBindView:
    def test_busy_and_disable(self) -> None:
        state = ConversationState()
        view = RecordingView()
        bind_view(state, view)

        state.user_sent()
        assert view.busy is True
        state.reply_received()
        assert view.busy is False
        state.user_sent()
        state.hangup_received()
        assert view.busy is False
        assert view.input_disabled is True
        assert view.calls_named("disable_input") == [("disable_input",)]
