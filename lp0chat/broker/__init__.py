from lp0chat.broker.connection import (
    BrokerConfig,
    BrokerConnection,
    Connection,
    InboundMessage,
    Subscription,
    inbox_prefix_for,
)

__all__ = [
    "BrokerConfig",
    "BrokerConnection",
    "Connection",
    "InboundMessage",
    "Subscription",
    "inbox_prefix_for",
]
