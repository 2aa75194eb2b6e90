"""lp0chat — chat bridge between an embedded widget and a remote agent.

The client identity is an NKEY user key pair, exchanged for a JWT at the
auth endpoint and used to open an authenticated NATS connection. Each
widget activation gets its own session, subjects and conversation state.

    from lp0chat.widget import ChatWidget
    from lp0chat.config import WidgetConfig

    async with ChatWidget(WidgetConfig(bot_id="b", customer_id="c"), view) as w:
        await w.send("Hello")
"""

__version__ = "0.1.0"
