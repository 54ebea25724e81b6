"""Operator command handlers."""

from __future__ import annotations

from telegram import Update
from telegram.ext import ContextTypes

from ..resolver.errors import InvalidPatternError, UnsupportedRedirectTypeError
from ..resolver.resolver import compile_pattern
from ..resolver.types import RedirectType
from ..storage.enums import SourceOrigin
from ..utils.urls import is_http_url, require_http_url
from .formatters import AlertFormatter

MAX_TAKEDOWN_ROWS = 20


class TelegramCommandsMixin:
    """Source management and status commands."""

    async def _cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /help command."""
        if not self._is_authorized(update):
            return
        await update.message.reply_text(AlertFormatter.format_help())

    async def _cmd_add(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /add <url> <type> [regex]."""
        if not self._is_authorized(update):
            return
        reply = await self.add_source_command(list(context.args or []))
        await update.message.reply_text(reply)

    async def add_source_command(self, args: list[str]) -> str:
        if len(args) < 2:
            return "Usage: /add <url> <type> [regex]"

        url, type_arg = args[0], args[1]
        pattern = " ".join(args[2:]) or None
        if not is_http_url(url):
            return "Invalid URL provided. Please enter a valid http(s) URL."
        try:
            redirect_type = RedirectType.parse(type_arg)
        except UnsupportedRedirectTypeError:
            allowed = ", ".join(t.value for t in RedirectType)
            return f"Unknown redirect type {type_arg!r}. Use one of: {allowed}"
        if pattern:
            try:
                compile_pattern(pattern)
            except InvalidPatternError as exc:
                return str(exc)

        source_id = await self.database.add_source(
            url, redirect_type.value, regex_pattern=pattern, origin=SourceOrigin.MANUAL.value
        )
        if source_id is None:
            return f'This url "{url}" already exists in the database'
        return f'The url "{url}" was added as {redirect_type.value}'

    async def _cmd_report(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /report <url>."""
        if not self._is_authorized(update):
            return
        reply = await self.report_url_command(list(context.args or []))
        await update.message.reply_text(reply, disable_web_page_preview=True)

    async def report_url_command(self, args: list[str]) -> str:
        """Submit a URL to every reporting service without visiting it."""
        if len(args) != 1:
            return "Usage: /report <url>"
        try:
            url = require_http_url(args[0])
        except ValueError:
            return "Invalid URL provided. Please enter a valid http(s) URL."
        if self.reports is None:
            return "Reporting is not configured."

        results = await self.reports.report_site(url)
        return AlertFormatter.format_report_results(url, results, sorted(self.reports.batched))

    async def _cmd_remove(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /remove <url>."""
        if not self._is_authorized(update):
            return
        if not context.args:
            await update.message.reply_text("Usage: /remove <url>")
            return
        url = context.args[0]
        removed = await self.database.remove_source(url)
        await update.message.reply_text(
            f'Removed "{url}"' if removed else f'No source found for "{url}"'
        )

    async def _cmd_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /status command."""
        if not self._is_authorized(update):
            return
        sources = await self.database.list_sources()
        counts = await self.database.count_destinations_by_source()
        summary = await self.database.get_takedown_summary()
        await update.message.reply_text(
            AlertFormatter.format_status(sources, counts, summary),
            disable_web_page_preview=True,
        )

    async def _cmd_takedowns(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /takedowns [n]."""
        if not self._is_authorized(update):
            return
        limit = 10
        if context.args:
            try:
                limit = max(1, min(int(context.args[0]), MAX_TAKEDOWN_ROWS))
            except ValueError:
                pass

        rows = await self.database.get_recent_takedowns(limit=limit)
        summary = await self.database.get_takedown_summary()
        await update.message.reply_text(
            AlertFormatter.format_takedowns(rows, summary),
            disable_web_page_preview=True,
        )
