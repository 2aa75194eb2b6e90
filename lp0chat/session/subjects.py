"""Session identity and subject naming.

All three subjects a session uses are derived from one ``Session`` so
that they always embed the same ``<public key>.<session id>`` pair and
one session can never see another's traffic.

    user.<publicKey>.<sessionId>.user                          (inbound echo)
    user.<publicKey>.<sessionId>.bot.<botId>                   (inbound replies)
    service.chat.<publicKey>.<sessionId>.<botId>.<customerId>  (outbound)
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass


def new_session_id() -> str:
    """Time-prefixed unique id: ``<unix seconds>_<uuid4>``."""
    return f"{int(time.time())}_{uuid.uuid4()}"


@dataclass(frozen=True)
class Session:
    """One conversation, fixed for the lifetime of a widget."""
    session_id: str
    public_key: str
    bot_id: str
    customer_id: str

    @classmethod
    def start(cls, public_key: str, bot_id: str, customer_id: str) -> "Session":
        return cls(
            session_id=new_session_id(),
            public_key=public_key,
            bot_id=bot_id,
            customer_id=customer_id,
        )

    @property
    def scope(self) -> str:
        return f"{self.public_key}.{self.session_id}"


@dataclass(frozen=True)
class SessionSubjects:
    user_echo: str
    agent_reply: str
    outbound: str

    @classmethod
    def for_session(cls, session: Session) -> "SessionSubjects":
        scope = session.scope
        return cls(
            user_echo=f"user.{scope}.user",
            agent_reply=f"user.{scope}.bot.{session.bot_id}",
            outbound=f"service.chat.{scope}.{session.bot_id}.{session.customer_id}",
        )
