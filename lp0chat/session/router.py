"""Session router — subjects, inbound loops and the outbound path.

On ``start()`` the router subscribes to the session's two inbound
subjects, runs one consumption task per subscription, and publishes the
``/start`` control message that seeds the agent with the user's context.

User-echo loop
    Messages the user sent, echoed back by the service. Rendered only
    when ``show_history`` is set; ``/start`` echoes are hidden when
    ``hide_start`` is set.

Agent-reply loop
    Agent replies. A trailing ``[HANGUP]`` ends the conversation: the
    marker is stripped, input is disabled and, when configured, a
    one-shot redirect is armed. Without ``show_history`` each reply
    replaces the transcript.

Decode failures follow ``RouterConfig.decode_error_policy``: ``"fail"``
ends the loop (the failure is recorded in ``failures``), ``"skip"``
logs and moves on to the next message.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Literal

from lp0chat.broker.connection import Subscription
from lp0chat.config.settings import Settings
from lp0chat.errors import DecodeError, InvalidPublishError
from lp0chat.session.context import SessionContext
from lp0chat.session.view import (
    DEFAULT_LINE_BREAK,
    ChatView,
    MessageRole,
    bind_view,
    format_message,
)

logger = logging.getLogger(__name__)

HANGUP_MARKER = "[HANGUP]"
START_COMMAND = "/start"

USER_ECHO_LOOP = "user-echo"
AGENT_REPLY_LOOP = "agent-reply"


def resolve_timezone() -> str:
    """Best-effort IANA name of the host's time zone."""
    tz = os.environ.get("TZ", "").lstrip(":")
    if tz:
        return tz
    localtime = Path("/etc/localtime")
    if localtime.is_symlink():
        target = str(localtime.resolve())
        if "zoneinfo/" in target:
            return target.split("zoneinfo/", 1)[1]
    return datetime.now().astimezone().tzname() or "UTC"


@dataclass
class RouterConfig:
    """Router behaviour that is not per-widget."""
    timezone: str = ""                 # empty → resolve_timezone()
    decode_error_policy: Literal["fail", "skip"] = "fail"
    line_break: str = DEFAULT_LINE_BREAK

    @classmethod
    def from_settings(cls, settings: Settings) -> "RouterConfig":
        return cls(
            timezone=settings.USER_TIMEZONE,
            decode_error_policy=settings.DECODE_ERROR_POLICY,
            line_break=settings.LINE_BREAK,
        )


class SessionRouter:
    """Routes one session's traffic between the broker and the view."""

    def __init__(
        self,
        context: SessionContext,
        view: ChatView,
        config: RouterConfig | None = None,
    ) -> None:
        self._ctx = context
        self._view = view
        self._config = config or RouterConfig()
        self._subscriptions: dict[str, Subscription] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._redirect: asyncio.TimerHandle | None = None
        self._unbind_view: Callable[[], None] | None = None
        self.failures: dict[str, BaseException] = {}
        self.redirected = False

    @property
    def context(self) -> SessionContext:
        return self._ctx

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks.values())

    # -- Lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Subscribe both inbound loops, then announce the session."""
        if self._tasks:
            logger.warning("Router for session %s already started",
                           self._ctx.session.session_id)
            return

        subjects = self._ctx.subjects
        conn = self._ctx.connection
        logger.info("Handling session %s for bot %s, customer %s",
                    self._ctx.session.session_id,
                    self._ctx.session.bot_id,
                    self._ctx.session.customer_id)

        self._unbind_view = bind_view(self._ctx.state, self._view)
        self._subscriptions[USER_ECHO_LOOP] = await conn.subscribe(subjects.user_echo)
        self._subscriptions[AGENT_REPLY_LOOP] = await conn.subscribe(subjects.agent_reply)

        self._tasks[USER_ECHO_LOOP] = asyncio.create_task(
            self._consume(USER_ECHO_LOOP, self._on_user_echo),
            name=f"lp0chat-{USER_ECHO_LOOP}",
        )
        self._tasks[AGENT_REPLY_LOOP] = asyncio.create_task(
            self._consume(AGENT_REPLY_LOOP, self._on_agent_reply),
            name=f"lp0chat-{AGENT_REPLY_LOOP}",
        )

        await self.send(self.start_message())
        logger.info('"%s" message sent', START_COMMAND)

    async def stop(self) -> None:
        """Unsubscribe both loops and cancel anything still pending."""
        for subscription in self._subscriptions.values():
            await subscription.unsubscribe()

        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._redirect is not None:
            self._redirect.cancel()
            self._redirect = None

        if self._unbind_view is not None:
            self._unbind_view()
            self._unbind_view = None
        logger.debug("Router for session %s stopped", self._ctx.session.session_id)

    # -- Outbound ------------------------------------------------------------

    def start_message(self) -> str:
        """``/start`` followed by the user's context as compact JSON."""
        cfg = self._ctx.config
        payload: dict[str, Any] = {
            "USER_TIMEZONE": self._config.timezone or resolve_timezone(),
        }
        if cfg.user_email:
            payload["USER_EMAIL"] = cfg.user_email
        if cfg.first_name:
            payload["USER_FIRST_NAME"] = cfg.first_name
        if cfg.last_name:
            payload["USER_LAST_NAME"] = cfg.last_name
        return f"{START_COMMAND} {json.dumps(payload, separators=(',', ':'))}"

    async def send(self, text: str) -> None:
        """Publish *text* to the agent. Does not wait for a reply."""
        session = self._ctx.session
        if not session.bot_id or not session.customer_id or not text:
            raise InvalidPublishError("Bot ID, Customer ID, and message are required.")
        subject = self._ctx.subjects.outbound
        logger.info("Publishing message to subject: %s", subject)
        await self._ctx.connection.publish(subject, text.encode("utf-8"))

    # -- Inbound -------------------------------------------------------------

    async def _consume(self, loop_name: str, handler: Callable[[str], None]) -> None:
        subscription = self._subscriptions[loop_name]
        try:
            async for message in subscription:
                try:
                    text = message.decode()
                except DecodeError as e:
                    if self._config.decode_error_policy == "skip":
                        logger.warning("Skipping message on %s: %s", message.subject, e)
                        continue
                    raise
                logger.debug("Received %s message: %s", loop_name, text)
                handler(text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if isinstance(e, DecodeError):
                logger.error("%s loop stopped: %s", loop_name, e)
            else:
                logger.exception("%s loop failed", loop_name)
            self.failures[loop_name] = e
            if loop_name == AGENT_REPLY_LOOP:
                self._ctx.state.reply_loop_failed()

    def _on_user_echo(self, text: str) -> None:
        cfg = self._ctx.config
        if text.startswith(START_COMMAND) and cfg.hide_start:
            return
        if not cfg.show_history:
            return
        self._view.append_or_replace_message(
            MessageRole.USER, format_message(text, self._config.line_break)
        )

    def _on_agent_reply(self, text: str) -> None:
        cfg = self._ctx.config
        hangup = text.endswith(HANGUP_MARKER)
        if hangup:
            text = text[: -len(HANGUP_MARKER)].strip()

        self._view.append_or_replace_message(
            MessageRole.BOT,
            format_message(text, self._config.line_break),
            replace=not cfg.show_history,
        )

        if not hangup:
            self._ctx.state.reply_received()
            return

        logger.info("Agent hung up session %s", self._ctx.session.session_id)
        if self._ctx.state.hangup_received() is not None and cfg.redirects_on_hangup:
            self._arm_redirect(cfg.hangup_url, cfg.hangup_wait_ms)

    def _arm_redirect(self, url: str, wait_ms: int) -> None:
        logger.info("Redirecting to %s in %dms", url, wait_ms)
        loop = asyncio.get_running_loop()
        self._redirect = loop.call_later(wait_ms / 1000.0, self._navigate, url)

    def _navigate(self, url: str) -> None:
        self._redirect = None
        self.redirected = True
        self._view.navigate(url)
