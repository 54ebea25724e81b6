"""Tests for the redirect check round and source pruning."""

from types import SimpleNamespace

import httpx
import pytest

from cloakwatch.analyzer.decision import ClassificationDecisionEngine, ClassifierVerdict
from cloakwatch.analyzer.inspector import Inspection
from cloakwatch.analyzer.signals import DetectedSignals, SignalDetector
from cloakwatch.analyzer.url_classifier import UrlClassifier
from cloakwatch.analyzer.takedown_checker import DnsStatus
from cloakwatch.pipeline.destination_store import DestinationStore
from cloakwatch.pipeline.pruning import SourcePruner
from cloakwatch.pipeline.redirect_monitor import RedirectMonitor, pattern_decision
from cloakwatch.resolver import RedirectResolver
from cloakwatch.resolver.http_strategies import HttpRedirectStrategies
from cloakwatch.storage.database import Database


class _Resolver:
    def __init__(self, destinations):
        self.destinations = destinations

    async def resolve(self, url, redirect_type):
        outcome = self.destinations.get(url)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def resolve_legacy(self, url, pattern, redirect_type):
        destination = self.destinations.get(url)
        if not destination:
            return None, False
        return destination, pattern in destination


class _Classifier:
    def __init__(self, scams=(), unclassifiable=()):
        self.scams = set(scams)
        self.unclassifiable = set(unclassifiable)
        self.seen = []

    async def classify_url(self, url, engine, referer=None):
        self.seen.append(url)
        if url in self.unclassifiable:
            return None
        is_scam = url in self.scams
        inspection = Inspection(
            initial_url=url,
            final_url=url,
            redirect_path=[url],
            screenshot=b"png",
            signals=DetectedSignals(fullscreen_requested=is_scam),
        )
        decision = SimpleNamespace(is_scam=is_scam, confidence=0.9 if is_scam else 0.1)
        return SimpleNamespace(inspection=inspection, decision=decision)


def _monitor(db, destinations, classifier):
    engine = ClassificationDecisionEngine(0.7, allowlist={"google.com"})
    return RedirectMonitor(db, _Resolver(destinations), classifier, engine, DestinationStore(db))


def test_pattern_decision():
    assert pattern_decision("https://popup.example/", True).is_scam is True
    assert pattern_decision("https://popup.example/", True).confidence == 1.0
    assert pattern_decision("https://popup.example/", False).reason == "pattern did not match"

    allowlisted = pattern_decision("https://www.google.com/", True, {"google.com"})
    assert allowlisted.is_scam is False
    assert allowlisted.allowlisted is True


@pytest.mark.asyncio
async def test_check_all_counts_each_outcome(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        await db.add_source("https://scammy.example/", "http")
        await db.add_source("https://quiet.example/", "http")
        await db.add_source("https://broken.example/", "http")
        await db.add_source("https://unknown.example/", "browser")
        classifier = _Classifier(scams={"https://scam.example/alert"}, unclassifiable={"https://blank.example/"})
        monitor = _monitor(
            db,
            {
                "https://scammy.example/": "https://scam.example/alert",
                "https://quiet.example/": None,
                "https://broken.example/": ConnectionError("reset"),
                "https://unknown.example/": "https://blank.example/",
            },
            classifier,
        )

        stats = await monitor.check_all()

        assert (stats.checked, stats.failed, stats.idle, stats.new_scams) == (2, 2, 1, 1)
        assert await db.count_destinations() == 1
        rows = await db.list_destinations()
        assert rows[0]["redirect_path"] == '["https://scammy.example/","https://scam.example/alert"]'
        assert monitor.last_stats is stats
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_legacy_pattern_sources_skip_the_classifier(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        await db.add_source("https://legacy.example/", "http", regex_pattern="popup")
        classifier = _Classifier()
        monitor = _monitor(db, {"https://legacy.example/": "https://popup.example/alert"}, classifier)

        stats = await monitor.check_all()

        assert stats.new_scams == 1
        assert classifier.seen == []
        assert (await db.get_takedown_summary())["total"] == 1
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_no_sources_is_a_quiet_round(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        stats = await _monitor(db, {}, _Classifier()).check_all()
        assert stats.checked == 0
    finally:
        await db.close()


class _DnsChecker:
    def __init__(self, dead_hosts):
        self.dead_hosts = set(dead_hosts)

    async def check_dns(self, url):
        if any(host in url for host in self.dead_hosts):
            return DnsStatus.NXDOMAIN
        return DnsStatus.RESOLVES


@pytest.mark.asyncio
async def test_pruner_removes_dead_then_inactive_sources(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        dead_id = await db.add_source("https://dead.example/", "http")
        stale_id = await db.add_source("https://stale.example/", "http")
        keep_id = await db.add_source("https://keep.example/", "http")
        await db._connection.execute(
            "UPDATE sources SET created_at = datetime('now', '-10 days') WHERE id IN (?, ?)",
            (dead_id, stale_id),
        )

        stats = await SourcePruner(db, _DnsChecker({"dead.example"}), inactive_days=5).prune()

        assert (stats.unresolvable, stats.inactive) == (1, 1)
        remaining = [row["id"] for row in await db.list_sources()]
        assert remaining == [keep_id]
    finally:
        await db.close()


class _AgentString:
    async def get(self):
        return "TestAgent/1.0"


class _StaticInspector:
    """Lands on the URL it is given and derives hosting signals from it."""

    async def inspect(self, url, referer=None):
        signals = SignalDetector().analyze_url(url)
        return Inspection(initial_url=url, final_url=url, redirect_path=[url], screenshot=b"png", signals=signals)


class _ScreenshotVerdict:
    def __init__(self, verdict):
        self.verdict = verdict

    async def classify(self, image_bytes):
        return self.verdict


class _Channel:
    def __init__(self):
        self.alerts = []

    async def send_scam_alert(self, alert):
        self.alerts.append(alert)
        return True


@pytest.mark.asyncio
async def test_header_redirect_to_paas_scam_end_to_end(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        await db.add_source("https://cloaker.example/go", "http")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": "https://tech-help.herokuapp.com/"})

        http = HttpRedirectStrategies(_AgentString())
        http._client = lambda user_agent: httpx.AsyncClient(
            transport=httpx.MockTransport(handler), follow_redirects=False
        )
        resolver = RedirectResolver(_AgentString(), http=http)
        url_classifier = UrlClassifier(_StaticInspector(), _ScreenshotVerdict(ClassifierVerdict(True, 0.99)))
        channel = _Channel()
        store = DestinationStore(db, alerts=channel)
        monitor = RedirectMonitor(db, resolver, url_classifier, ClassificationDecisionEngine(0.7), store)

        stats = await monitor.check_all()
        assert (stats.checked, stats.new_scams) == (1, 1)

        [destination] = await db.list_destinations()
        assert destination["url"] == "https://tech-help.herokuapp.com/"
        assert destination["is_scam"] == 1

        [alert] = channel.alerts
        assert alert.final_url == "https://tech-help.herokuapp.com/"
        assert "is_third_party_hosting" in alert.signals

        status = await db.get_takedown_status(destination["id"])
        assert status["check_active"] == 1
        for column in ("safebrowsing_flagged_at", "netcraft_flagged_at", "smartscreen_flagged_at", "dns_unresolvable_at"):
            assert status[column] is None

        # A second round only refreshes the destination
        await monitor.check_all()
        assert len(channel.alerts) == 1
        assert await db.count_destinations() == 1
    finally:
        await db.close()
