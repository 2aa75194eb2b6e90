"""Widget configuration — typed, validated once at construction.

The embedding page describes a widget with string attributes
(``bot-id="..." show-history="true"``). ``WidgetConfig.from_attributes``
turns those into a typed value and refuses to build one when a required
attribute is missing, instead of letting the widget start half-configured.

    config = WidgetConfig.from_attributes({
        "bot-id": "support",
        "customer-id": "acme",
        "show-history": "true",
        "hide-start": "true",
    })
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from lp0chat.errors import WidgetConfigError

logger = logging.getLogger(__name__)


REQUIRED_ATTRIBUTES: tuple[str, ...] = (
    "bot-id",
    "customer-id",
    "show-history",
    "hide-start",
)

OPTIONAL_ATTRIBUTES: tuple[str, ...] = (
    "hangup-url",
    "hangup-wait",
    "user-email",
    "first-name",
    "last-name",
)


@dataclass(frozen=True)
class WidgetConfig:
    """Routing and behaviour flags for one widget instance."""
    bot_id: str
    customer_id: str
    show_history: bool = False
    hide_start: bool = False
    hangup_url: str = ""
    hangup_wait_ms: int = 0       # 0 disables the redirect
    user_email: str = ""
    first_name: str = ""
    last_name: str = ""

    def __post_init__(self) -> None:
        if not self.bot_id:
            raise WidgetConfigError("bot_id is required")
        if not self.customer_id:
            raise WidgetConfigError("customer_id is required")
        if self.hangup_wait_ms < 0:
            raise WidgetConfigError("hangup_wait_ms must not be negative")

    @property
    def redirects_on_hangup(self) -> bool:
        return bool(self.hangup_url and self.hangup_wait_ms)

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, str]) -> "WidgetConfig":
        """Build a config from widget attribute strings.

        Raises ``WidgetConfigError`` listing every missing required
        attribute, or naming the first malformed one.
        """
        missing = [name for name in REQUIRED_ATTRIBUTES if name not in attributes]
        if missing:
            for name in missing:
                logger.error("Missing required attribute - %s", name)
            raise WidgetConfigError(
                f"Missing required attribute(s): {', '.join(missing)}"
            )

        unknown = set(attributes) - set(REQUIRED_ATTRIBUTES) - set(OPTIONAL_ATTRIBUTES)
        if unknown:
            logger.debug("Ignoring unrecognised attributes: %s", sorted(unknown))

        wait_raw = (attributes.get("hangup-wait") or "").strip()
        try:
            hangup_wait_ms = int(wait_raw) if wait_raw else 0
        except ValueError:
            raise WidgetConfigError(
                f"hangup-wait must be an integer number of milliseconds, got {wait_raw!r}"
            ) from None

        return cls(
            bot_id=attributes["bot-id"].strip(),
            customer_id=attributes["customer-id"].strip(),
            show_history=_as_flag("show-history", attributes["show-history"]),
            hide_start=_as_flag("hide-start", attributes["hide-start"]),
            hangup_url=(attributes.get("hangup-url") or "").strip(),
            hangup_wait_ms=hangup_wait_ms,
            user_email=(attributes.get("user-email") or "").strip(),
            first_name=(attributes.get("first-name") or "").strip(),
            last_name=(attributes.get("last-name") or "").strip(),
        )


def _as_flag(name: str, value: str) -> bool:
    normalised = value.strip().lower()
    if normalised == "true":
        return True
    if normalised == "false":
        return False
    raise WidgetConfigError(f"{name} must be 'true' or 'false', got {value!r}")
