"""Shared state for the alert bot mixins."""

from __future__ import annotations

import logging
from typing import Optional

from telegram import Update

from ..storage.database import Database

logger = logging.getLogger(__name__)


class TelegramCoreMixin:
    def __init__(self, token: str, chat_id: str, database: Optional[Database], reports=None):
        self.token = token
        # Commands are accepted only from the chat alerts go to
        self.chat_id = str(chat_id).strip()
        self.database = database
        # ReportManager, for manual /report submissions
        self.reports = reports
        self.alerts_sent = 0

        self._app = None
        self._is_running = True

    def _is_authorized(self, update: Update) -> bool:
        chat = update.effective_chat
        return chat is not None and str(chat.id) == self.chat_id
