"""Authenticated NATS connection.

The broker authenticates the client in two halves: the JWT proves the
public key was vetted by the auth endpoint, and a signature over the
server-issued nonce proves the client holds the matching seed. Reply
subjects are scoped to the client with an ``_INBOX.<public key>``
prefix so that no other client can observe them.

    broker = BrokerConnection(BrokerConfig(servers=["ws://localhost:5222"]))
    conn = await broker.connect(token, identity)
    sub = await conn.subscribe("user.U....user")
    async for message in sub:
        ...
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable

import nats
from nats.errors import Error as NatsError

from lp0chat.auth.credentials import AccessToken
from lp0chat.config.settings import Settings
from lp0chat.errors import (
    BrokerConnectionError,
    ConnectionTimeoutError,
    DecodeError,
    PublishError,
)
from lp0chat.identity.store import Identity

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_MS = 60000

ConnectFn = Callable[..., Awaitable[Any]]


def inbox_prefix_for(public_key: str) -> str:
    return f"_INBOX.{public_key}"


# ---------------------------------------------------------------------------
# Messages and subscriptions
# ---------------------------------------------------------------------------


@dataclass
class InboundMessage:
    """One message received on a subscription."""
    subject: str
    raw: bytes
    received_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def decode(self) -> str:
        """Return the payload as text.

        Raises ``DecodeError`` for an empty or non-UTF-8 payload.
        """
        if not self.raw:
            raise DecodeError(f"Empty payload on {self.subject}")
        try:
            text = self.raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Undecodable payload on {self.subject}: {e}") from e
        if not text:
            raise DecodeError(f"Empty payload on {self.subject}")
        return text


class Subscription:
    """Lazy, infinite sequence of ``InboundMessage`` for one subject.

    Iteration ends only when ``unsubscribe()`` is called. To resume
    intake after that, subscribe again.
    """

    def __init__(self, subject: str, nats_sub: Any) -> None:
        self.subject = subject
        self._sub = nats_sub
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[InboundMessage]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[InboundMessage]:
        async for msg in self._sub.messages:
            yield InboundMessage(subject=msg.subject, raw=bytes(msg.data))

    async def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._sub.unsubscribe()
        except NatsError as e:
            # Connection already gone; the server dropped the interest with it.
            logger.debug("Unsubscribe from %s failed: %s", self.subject, e)
        logger.debug("Unsubscribed from %s", self.subject)


class Connection:
    """An established broker connection.

    Exposes exactly what the session router needs: ``subscribe`` and
    ``publish``, plus ``close`` for teardown.
    """

    def __init__(self, nc: Any, inbox_prefix: str) -> None:
        self._nc = nc
        self.inbox_prefix = inbox_prefix

    @property
    def is_closed(self) -> bool:
        return bool(self._nc.is_closed)

    async def subscribe(self, subject: str) -> Subscription:
        sub = await self._nc.subscribe(subject)
        logger.debug("Subscribed to %s", subject)
        return Subscription(subject, sub)

    async def publish(self, subject: str, payload: bytes) -> bool:
        """Publish *payload* on *subject*. Delivery is the broker's job."""
        try:
            await self._nc.publish(subject, payload)
        except NatsError as e:
            raise PublishError(f"Publish to {subject} failed: {e}") from e
        logger.debug("Published %d bytes to %s", len(payload), subject)
        return True

    async def close(self) -> None:
        if self._nc.is_closed:
            return
        try:
            await self._nc.drain()
        except NatsError as e:
            logger.warning("Drain failed, closing: %s", e)
            await self._nc.close()


# ---------------------------------------------------------------------------
# Connector
# ---------------------------------------------------------------------------


@dataclass
class BrokerConfig:
    """Where and how long to try connecting."""
    servers: list[str] = field(default_factory=lambda: ["ws://localhost:5222"])
    timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS
    name: str = "lp0chat"

    @classmethod
    def from_settings(cls, settings: Settings) -> "BrokerConfig":
        servers = [s.strip() for s in settings.NATS_URL.split(",") if s.strip()]
        return cls(servers=servers, timeout_ms=settings.CONNECT_TIMEOUT_MS)


class BrokerConnection:
    """Builds authenticated connections to the broker.

    Parameters
    ----------
    config:
        Servers and default timeout.
    connect_fn:
        The client constructor, ``nats.connect`` unless replaced
        (tests pass an in-memory fake).
    """

    def __init__(
        self,
        config: BrokerConfig | None = None,
        connect_fn: ConnectFn | None = None,
    ) -> None:
        self._config = config or BrokerConfig()
        self._connect_fn = connect_fn or nats.connect

    async def connect(
        self,
        token: AccessToken,
        identity: Identity,
        inbox_prefix: str | None = None,
        timeout_ms: int | None = None,
    ) -> Connection:
        """Open an authenticated connection.

        Raises ``ConnectionTimeoutError`` when no connection is made
        within *timeout_ms*.
        """
        token.ensure_issued_for(identity.public_key)
        inbox_prefix = inbox_prefix or inbox_prefix_for(identity.public_key)
        timeout_ms = timeout_ms or self._config.timeout_ms
        timeout = timeout_ms / 1000.0

        def user_jwt_cb() -> bytes:
            return token.token.encode()

        def signature_cb(nonce: str) -> bytes:
            return base64.b64encode(identity.sign(nonce.encode()))

        logger.info("Connecting to %s", ", ".join(self._config.servers))
        try:
            nc = await asyncio.wait_for(
                self._connect_fn(
                    servers=self._config.servers,
                    name=self._config.name,
                    user_jwt_cb=user_jwt_cb,
                    signature_cb=signature_cb,
                    inbox_prefix=inbox_prefix,
                    connect_timeout=timeout,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConnectionTimeoutError(
                f"No broker connection within {timeout_ms}ms"
            ) from e
        except (NatsError, OSError) as e:
            raise BrokerConnectionError(f"Broker connection failed: {e}") from e

        logger.info("Broker connection established")
        return Connection(nc, inbox_prefix)
