"""Shared fixtures: a recording view, identities and a fake broker."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from lp0chat.broker.connection import Connection, inbox_prefix_for
from lp0chat.config.widget import WidgetConfig
from lp0chat.identity.store import Identity, IdentityStore, MemoryStorage
from lp0chat.session.context import SessionContext
from lp0chat.session.router import RouterConfig, SessionRouter
from lp0chat.session.view import MessageRole
from tests.fake_nats import FakeNatsClient


# ---------------------------------------------------------------------------
# Recording view
# ---------------------------------------------------------------------------


@dataclass
class RecordingView:
    """ChatView that records every call and keeps a visible transcript."""
    calls: list[tuple[Any, ...]] = field(default_factory=list)
    transcript: list[tuple[MessageRole, str]] = field(default_factory=list)
    busy: bool = False
    input_disabled: bool = False

    def append_or_replace_message(
        self, role: MessageRole, text: str, *, replace: bool = False
    ) -> None:
        self.calls.append(("message", role, text, replace))
        if replace:
            self.transcript = [(role, text)]
        else:
            self.transcript.append((role, text))

    def set_busy(self, busy: bool) -> None:
        self.calls.append(("busy", busy))
        self.busy = busy

    def disable_input(self) -> None:
        self.calls.append(("disable_input",))
        self.input_disabled = True

    def navigate(self, url: str) -> None:
        self.calls.append(("navigate", url))

    def show_error(self, text: str) -> None:
        self.calls.append(("error", text))

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == name]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def view() -> RecordingView:
    return RecordingView()


@pytest.fixture
def identity() -> Identity:
    return IdentityStore(MemoryStorage()).get_or_create_identity()


@pytest.fixture
def nats_client() -> FakeNatsClient:
    return FakeNatsClient()


@pytest.fixture
def connection(nats_client: FakeNatsClient, identity: Identity) -> Connection:
    return Connection(nats_client, inbox_prefix_for(identity.public_key))


@pytest.fixture
def make_router(
    identity: Identity, connection: Connection, view: RecordingView
) -> Callable[..., SessionRouter]:
    """Build a router for a fresh session.

    Keyword arguments go to ``WidgetConfig``; ``policy`` selects the
    decode-error policy.
    """

    def _make(policy: str = "fail", **config_kwargs: Any) -> SessionRouter:
        config_kwargs.setdefault("bot_id", "b1")
        config_kwargs.setdefault("customer_id", "c1")
        context = SessionContext.create(WidgetConfig(**config_kwargs), identity, connection)
        return SessionRouter(
            context,
            view,
            RouterConfig(timezone="Europe/Berlin", decode_error_policy=policy),
        )

    return _make
