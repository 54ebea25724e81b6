"""Tests for alert formatting and operator commands."""

from datetime import datetime
from types import SimpleNamespace

import pytest

from cloakwatch.bot import AlertBot
from cloakwatch.bot.formatters import FIELD_VALUE_LIMIT, AlertFormatter, ScamAlert, format_duration
from cloakwatch.reporter.base import BaseReporter, ReportResult, ReportStatus
from cloakwatch.reporter.batch_queue import BatchReportQueue
from cloakwatch.reporter.manager import ReportManager
from cloakwatch.storage.database import Database


def test_format_duration():
    assert format_duration(90) == "1m"
    assert format_duration(3 * 3600 + 120) == "3h 2m"
    assert format_duration(2 * 86400 + 3600) == "2d 1h"
    assert format_duration(-5) == "0m"


def test_search_ad_alert_lists_ad_text_path_and_cloaker():
    alert = ScamAlert(
        kind="search_ad",
        initial_url="https://lp.example/",
        final_url="https://scam.example/",
        confidence=0.9912,
        redirect_path=["https://lp.example/", "https://scam.example/"],
        ad_text="Call   now\nfor support",
        cloaker_candidate="https://lp.example/",
        signals=["fullscreen_requested"],
    )
    text = AlertFormatter.format_scam_alert(alert)

    assert text.startswith("🚨 NEW SEARCH AD SCAM DETECTED 🚨")
    assert "Ad Text: Call now for support" in text
    assert "1. https://lp.example/\n2. https://scam.example/" in text
    assert "Potential Cloaker: https://lp.example/" in text
    assert "Signals: fullscreen_requested" in text
    assert text.endswith("Confidence: 99.12%")


def test_status_change_alert_uses_existing_title():
    alert = ScamAlert(kind="typosquat", initial_url="http://gmai.com", final_url="https://s.example/", confidence=1.0, is_new=False)
    text = AlertFormatter.format_scam_alert(alert)
    assert "TYPOSQUAT DESTINATION NOW MARKED AS SCAM" in text
    assert "Typosquat Domain: http://gmai.com" in text
    assert "Initial: http://gmai.com\nFinal: https://s.example/" in text


def test_long_redirect_path_is_cut_off():
    path = [f"https://hop{i}.example/{'x' * 80}" for i in range(30)]
    rendered = AlertFormatter.format_redirect_path(path[0], path[-1], path)
    assert len(rendered) <= FIELD_VALUE_LIMIT
    assert rendered.splitlines()[-1].endswith("more redirect(s)")


def test_takedowns_show_time_to_flag():
    rows = [
        {
            "destination_url": "https://scam.example/",
            "first_seen": "2024-05-01 10:00:00",
            "netcraft_flagged_at": "2024-05-01 12:30:00",
            "dns_unresolvable_at": datetime(2024, 5, 3, 11, 0, 0),
        }
    ]
    text = AlertFormatter.format_takedowns(rows, {"netcraft": 1, "dns_unresolvable": 1})
    assert "Netcraft 2h 30m | DNS 2d 1h" in text
    assert "Netcraft: 1" in text
    assert AlertFormatter.format_takedowns([], {}) == "No takedowns found."


def test_status_lists_sources():
    sources = [{"id": 1, "url": "https://src.example/", "resolution_type": "http"}]
    text = AlertFormatter.format_status(sources, {1: 4}, {"active": 2, "total": 3})
    assert "• https://src.example/ [http] - 4 destination(s)" in text
    assert text.endswith("Takedown checks: 2 active of 3")
    assert AlertFormatter.format_status([], {}, {}).startswith("No sources are being monitored.")


@pytest.mark.asyncio
async def test_add_source_command(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        bot = AlertBot("token", "42", db)

        assert (await bot.add_source_command(["https://src.example/"])).startswith("Usage")
        assert (await bot.add_source_command(["not-a-url", "http"])).startswith("Invalid URL")
        assert "Unknown redirect type" in await bot.add_source_command(["https://src.example/", "weebly"])
        assert "Invalid destination pattern" in await bot.add_source_command(["https://src.example/", "http", "("])

        reply = await bot.add_source_command(["https://src.example/", "BROWSER"])
        assert reply == 'The url "https://src.example/" was added as browser'
        assert (await db.get_source("https://src.example/"))["origin"] == "manual"

        duplicate = await bot.add_source_command(["https://src.example/", "http"])
        assert "already exists" in duplicate

        await bot.add_source_command(["https://legacy.example/", "http", "popup", "example"])
        assert (await db.get_source("https://legacy.example/"))["regex_pattern"] == "popup example"
    finally:
        await db.close()


def test_only_the_alert_chat_is_authorized():
    bot = AlertBot("token", "-100", database=None)
    assert bot._is_authorized(SimpleNamespace(effective_chat=SimpleNamespace(id=-100))) is True
    assert bot._is_authorized(SimpleNamespace(effective_chat=SimpleNamespace(id=7))) is False
    assert bot._is_authorized(SimpleNamespace(effective_chat=None)) is False


class _Service(BaseReporter):
    def __init__(self, name, status=ReportStatus.SUBMITTED, batched=False, message=None):
        super().__init__()
        self.platform_name = name
        self.batched = batched
        self.status = status
        self.message = message
        self._configured = True
        self.submitted = []

    async def submit(self, urls):
        self.submitted.extend(urls)
        return ReportResult(platform=self.platform_name, status=self.status, urls=tuple(urls), message=self.message)


@pytest.mark.asyncio
async def test_report_command_submits_to_every_service():
    queue = BatchReportQueue()
    direct = _Service("urlscan")
    failing = _Service("safebrowsing", ReportStatus.FAILED, message="Server error: 503")
    batched = _Service("netcraft", batched=True)
    bot = AlertBot("token", "42", database=None, reports=ReportManager([direct, failing, batched], queue))

    assert await bot.report_url_command([]) == "Usage: /report <url>"
    assert (await bot.report_url_command(["ftp://x.example/"])).startswith("Invalid URL")
    assert direct.submitted == []

    reply = await bot.report_url_command(["https://scam.example/alert"])

    assert reply.splitlines() == [
        "📨 Reported https://scam.example/alert",
        "• urlscan: submitted",
        "• safebrowsing: failed (Server error: 503)",
        "Queued for batch submission: netcraft",
    ]
    assert direct.submitted == ["https://scam.example/alert"]
    assert queue.pending_count("netcraft") == 1


@pytest.mark.asyncio
async def test_report_command_without_reporting():
    bot = AlertBot("token", "42", database=None)
    assert await bot.report_url_command(["https://scam.example/"]) == "Reporting is not configured."
