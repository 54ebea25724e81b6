"""Telegram bot for CloakWatch alerts and control."""

from .telegram_commands import TelegramCommandsMixin
from .telegram_core import TelegramCoreMixin
from .telegram_lifecycle import TelegramLifecycleMixin


class AlertBot(
    TelegramCoreMixin,
    TelegramLifecycleMixin,
    TelegramCommandsMixin,
):
    """Telegram bot for CloakWatch alerts and source management."""
