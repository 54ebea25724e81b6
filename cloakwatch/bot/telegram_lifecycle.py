"""Telegram bot lifecycle and messaging helpers."""

from __future__ import annotations

import logging
from typing import Optional

from telegram.error import NetworkError, TelegramError
from telegram.ext import Application, CommandHandler, ContextTypes

from .formatters import AlertFormatter, ScamAlert

logger = logging.getLogger(__name__)


class TelegramLifecycleMixin:
    """Lifecycle and messaging helpers."""

    async def start(self):
        """Start the Telegram bot."""
        self._app = Application.builder().token(self.token).build()

        self._app.add_error_handler(self._handle_error)

        self._app.add_handler(CommandHandler("start", self._cmd_help))
        self._app.add_handler(CommandHandler("help", self._cmd_help))
        self._app.add_handler(CommandHandler("add", self._cmd_add))
        self._app.add_handler(CommandHandler("remove", self._cmd_remove))
        self._app.add_handler(CommandHandler("status", self._cmd_status))
        self._app.add_handler(CommandHandler("takedowns", self._cmd_takedowns))
        self._app.add_handler(CommandHandler("report", self._cmd_report))

        await self._app.initialize()
        await self._app.start()
        await self._app.updater.start_polling(drop_pending_updates=True)

        logger.info("Telegram bot started")

    async def _handle_error(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        """Handle unexpected exceptions from Telegram handlers."""
        err = getattr(context, "error", None)
        update_id = getattr(update, "update_id", None)

        if isinstance(err, NetworkError):
            logger.warning("Telegram network error (update_id=%s): %s", update_id, err)
            return

        logger.exception("Unhandled Telegram handler error (update_id=%s)", update_id, exc_info=err)

    async def stop(self):
        """Stop the Telegram bot."""
        self._is_running = False
        if self._app:
            await self._app.updater.stop()
            await self._app.stop()
            await self._app.shutdown()
        logger.info("Telegram bot stopped")

    async def send_message(self, text: str, parse_mode: Optional[str] = None) -> bool:
        """Send a text message to the alert chat. Alerts never raise."""
        if not self._app:
            logger.error("Bot not started, cannot send message")
            return False

        try:
            await self._app.bot.send_message(
                chat_id=self.chat_id,
                text=text,
                parse_mode=parse_mode,
                disable_web_page_preview=True,
            )
        except TelegramError as exc:
            logger.error("Failed to send message: %s", exc)
            return False
        return True

    async def send_scam_alert(self, alert: ScamAlert) -> bool:
        sent = await self.send_message(AlertFormatter.format_scam_alert(alert))
        if sent:
            self.alerts_sent += 1
            logger.info("Sent %s alert for %s", alert.kind, alert.final_url)
        return sent

    async def send_cloaker_added(self, url: str, redirect_type: str, origin: str) -> bool:
        return await self.send_message(AlertFormatter.format_cloaker_added(url, redirect_type, origin))
