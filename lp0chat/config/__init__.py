from lp0chat.config.settings import Settings, settings
from lp0chat.config.widget import WidgetConfig, REQUIRED_ATTRIBUTES

__all__ = [
    "Settings",
    "settings",
    "WidgetConfig",
    "REQUIRED_ATTRIBUTES",
]
