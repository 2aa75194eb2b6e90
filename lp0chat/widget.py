"""Chat widget — one activation of the chat bridge.

Wires the pieces in order:

    identity → token → broker connection → session context → router

and owns their lifetime. Any setup failure aborts activation as a
whole: the view gets a generic error, whatever was acquired is
released, and the original error is re-raised to the caller.

    async with ChatWidget(config, view) as widget:
        await widget.send("Hello")
"""

from __future__ import annotations

import logging
from typing import Any

from lp0chat.auth.credentials import AuthConfig, CredentialExchange
from lp0chat.broker.connection import BrokerConfig, BrokerConnection, Connection
from lp0chat.config.settings import Settings, settings as default_settings
from lp0chat.config.widget import WidgetConfig
from lp0chat.errors import ConversationEndedError, InvalidPublishError
from lp0chat.identity.store import IdentityStore, JsonFileStorage, SeedStorage
from lp0chat.session.context import SessionContext
from lp0chat.session.router import RouterConfig, SessionRouter
from lp0chat.session.state import ConversationStatus
from lp0chat.session.view import ChatView

logger = logging.getLogger(__name__)

GENERIC_ERROR_TEXT = "An error occurred. Please try again later."


class ChatWidget:
    """One chat widget bound to one session.

    Parameters
    ----------
    config:
        Validated widget attributes.
    view:
        The UI collaborator.
    settings:
        Environment settings; the module-level singleton by default.
    storage:
        Seed storage; a ``JsonFileStorage`` at ``settings.STORAGE_PATH``
        by default.
    exchange, broker:
        Override the credential exchange and broker connector (tests).
    """

    def __init__(
        self,
        config: WidgetConfig,
        view: ChatView,
        *,
        settings: Settings | None = None,
        storage: SeedStorage | None = None,
        exchange: CredentialExchange | None = None,
        broker: BrokerConnection | None = None,
    ) -> None:
        self._settings = settings or default_settings
        self.config = config
        self.view = view
        self.identity_store = IdentityStore(
            storage or JsonFileStorage(self._settings.STORAGE_PATH)
        )
        self._exchange = exchange or CredentialExchange(
            AuthConfig.from_settings(self._settings)
        )
        self._broker = broker or BrokerConnection(
            BrokerConfig.from_settings(self._settings)
        )
        self._router_config = RouterConfig.from_settings(self._settings)
        self.context: SessionContext | None = None
        self.router: SessionRouter | None = None
        self._initialized = False

    async def __aenter__(self) -> "ChatWidget":
        await self.activate()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def status(self) -> ConversationStatus | None:
        return self.context.state.status if self.context else None

    async def activate(self) -> None:
        """Set up identity, credentials, connection and routing."""
        if self._initialized:
            logger.info("Widget already initialized")
            return
        self._initialized = True
        logger.info("Widget initialization starts")

        connection: Connection | None = None
        try:
            identity = self.identity_store.get_or_create_identity()
            token = await self._exchange.fetch_token(identity.public_key)
            connection = await self._broker.connect(
                token,
                identity,
                timeout_ms=self._settings.CONNECT_TIMEOUT_MS,
            )
            self.context = SessionContext.create(self.config, identity, connection)
            self.router = SessionRouter(self.context, self.view, self._router_config)
            await self.router.start()
        except Exception:
            logger.exception("Error during widget initialization")
            self.view.show_error(GENERIC_ERROR_TEXT)
            if self.router is not None:
                await self.router.stop()
            if connection is not None:
                await connection.close()
            self.context = None
            self.router = None
            raise

        logger.info("Widget ready (session %s)", self.context.session.session_id)

    async def send(self, text: str) -> None:
        """Send a user message and mark the conversation as waiting."""
        if self.router is None or self.context is None:
            raise RuntimeError("Widget is not active")
        state = self.context.state
        if state.is_hungup:
            raise ConversationEndedError("The conversation has ended")
        if not text:
            raise InvalidPublishError("Bot ID, Customer ID, and message are required.")
        transition = state.user_sent()
        try:
            await self.router.send(text)
        except Exception:
            # An earlier message may still be awaiting its reply.
            if transition is not None:
                state.send_failed()
            raise

    async def close(self) -> None:
        """Tear down subscriptions and the broker connection."""
        router, self.router = self.router, None
        if router is not None:
            await router.stop()
            await router.context.connection.close()
        logger.info("Widget closed")
