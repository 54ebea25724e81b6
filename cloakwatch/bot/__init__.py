"""Telegram bot for CloakWatch."""

from .formatters import AlertFormatter, ScamAlert
from .telegram import AlertBot

__all__ = ["AlertBot", "AlertFormatter", "ScamAlert"]
