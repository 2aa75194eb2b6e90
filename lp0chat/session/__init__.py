"""Session layer — subjects, routing and conversation state.

    from lp0chat.session import SessionContext, SessionRouter
    context = SessionContext.create(config, identity, connection)
    router = SessionRouter(context, view)
    await router.start()
"""

from lp0chat.session.context import SessionContext
from lp0chat.session.router import HANGUP_MARKER, RouterConfig, SessionRouter
from lp0chat.session.state import ConversationState, ConversationStatus, Transition
from lp0chat.session.subjects import Session, SessionSubjects, new_session_id
from lp0chat.session.view import ChatView, MessageRole, bind_view, format_message

__all__ = [
    "SessionContext",
    "SessionRouter",
    "RouterConfig",
    "HANGUP_MARKER",
    "ConversationState",
    "ConversationStatus",
    "Transition",
    "Session",
    "SessionSubjects",
    "new_session_id",
    "ChatView",
    "MessageRole",
    "bind_view",
    "format_message",
]
