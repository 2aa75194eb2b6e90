"""Per-widget session context.

Everything one widget activation owns, in one object passed by
reference to the components that need it. Nothing here is global:
two widgets in one process get two contexts.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from lp0chat.broker.connection import Connection
from lp0chat.config.widget import WidgetConfig
from lp0chat.identity.store import Identity
from lp0chat.session.state import ConversationState
from lp0chat.session.subjects import Session, SessionSubjects


@dataclass
class SessionContext:
    config: WidgetConfig
    identity: Identity
    session: Session
    connection: Connection
    state: ConversationState = field(default_factory=ConversationState)
    subjects: SessionSubjects = field(init=False)

    def __post_init__(self) -> None:
        if self.session.public_key != self.identity.public_key:
            raise ValueError("session and identity disagree on the public key")
        self.subjects = SessionSubjects.for_session(self.session)

    @classmethod
    def create(
        cls,
        config: WidgetConfig,
        identity: Identity,
        connection: Connection,
    ) -> "SessionContext":
        """Start a fresh session for *identity* under *config*."""
        session = Session.start(
            public_key=identity.public_key,
            bot_id=config.bot_id,
            customer_id=config.customer_id,
        )
        return cls(
            config=config,
            identity=identity,
            session=session,
            connection=connection,
        )
