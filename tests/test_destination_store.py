"""Tests for destination and detection recording."""

import pytest

from cloakwatch.analyzer.decision import Decision
from cloakwatch.analyzer.signals import DetectedSignals
from cloakwatch.pipeline.destination_store import DestinationStore
from cloakwatch.reporter.base import BaseReporter, ReportResult, ReportStatus
from cloakwatch.reporter.batch_queue import BatchReportQueue
from cloakwatch.reporter.manager import ReportManager
from cloakwatch.storage.database import Database


def _decision(is_scam: bool, confidence: float = 0.95) -> Decision:
    return Decision(
        is_scam=is_scam,
        confidence=confidence,
        raw_is_scam=is_scam,
        weighted_signal=is_scam,
        allowlisted=False,
        reason="test",
    )


class _Alerts:
    def __init__(self):
        self.alerts = []

    async def send_scam_alert(self, alert):
        self.alerts.append(alert)
        return True


class _Reports:
    def __init__(self):
        self.reported = []

    async def report_site(self, url):
        self.reported.append(url)


class _Enroller:
    def __init__(self):
        self.candidates = []

    async def try_enroll(self, candidate, origin):
        self.candidates.append((candidate, getattr(origin, "value", origin)))
        return True


def _store(db):
    return DestinationStore(db, alerts=_Alerts(), reports=_Reports(), enroller=_Enroller())


@pytest.mark.asyncio
async def test_new_scam_destination_alerts_reports_and_tracks(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        source_id = await db.add_source("https://src.example/", "browser")
        source = await db.get_source_by_id(source_id)
        store = _store(db)
        path = ["https://src.example/", "https://cloak.example/r", "https://scam.example/alert?gclid=1"]

        outcome = await store.record_destination(
            source,
            "https://scam.example/alert?gclid=1",
            _decision(True),
            path,
            DetectedSignals(fullscreen_requested=True),
        )

        assert outcome.is_new is True
        assert outcome.alerted is True
        assert outcome.enrolled is True
        assert len(store.alerts.alerts) == 1
        alert = store.alerts.alerts[0]
        assert alert.kind == "redirect"
        assert alert.final_url == "https://scam.example/alert"
        assert alert.cloaker_candidate == "https://cloak.example/r"
        assert alert.signals == ["fullscreen_requested"]
        assert store.reports.reported == ["https://scam.example/alert"]
        assert store.enroller.candidates == [("https://cloak.example/r", "redirect_monitor")]

        status = await db.get_takedown_status(outcome.record_id)
        assert status is not None
        assert status["check_active"] == 1
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_repeat_observation_only_refreshes(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        source = await db.get_source_by_id(await db.add_source("https://src.example/", "http"))
        store = _store(db)

        first = await store.record_destination(source, "https://scam.example/alert/", _decision(True))
        second = await store.record_destination(source, "https://SCAM.example/alert?session=2", _decision(True))

        assert second.is_new is False
        assert second.record_id == first.record_id
        assert len(store.alerts.alerts) == 1
        assert len(store.reports.reported) == 1
        assert await db.count_destinations() == 1
        assert (await db.get_takedown_summary())["total"] == 1
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_benign_destination_is_stored_quietly(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        source = await db.get_source_by_id(await db.add_source("https://src.example/", "http"))
        store = _store(db)

        outcome = await store.record_destination(source, "https://news.example/", _decision(False, 0.1))

        assert outcome.is_new is True
        assert outcome.alerted is False
        assert store.alerts.alerts == []
        assert store.reports.reported == []
        assert await db.get_takedown_status(outcome.record_id) is None
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_failed_write_has_no_side_effects(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        store = _store(db)
        ghost = {"id": 999, "url": "https://ghost.example/"}

        with pytest.raises(Exception):
            await store.record_destination(ghost, "https://scam.example/", _decision(True))

        assert store.alerts.alerts == []
        assert store.reports.reported == []
        assert await db.count_destinations() == 0
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_detection_status_flip_is_recorded_and_alerted(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        store = _store(db)
        path = ["https://typo.example/", "https://cloak.example/", "https://scam.example/alert"]

        first = await store.record_detection(
            "typosquat", "https://typo.example/", "https://scam.example/alert", path, _decision(False, 0.5)
        )
        assert first.is_new is True
        assert store.alerts.alerts == []

        again = await store.record_detection(
            "typosquat", "https://typo.example/", "https://scam.example/alert", path, _decision(False, 0.5)
        )
        assert again.status_changed is False
        assert store.alerts.alerts == []

        flipped = await store.record_detection(
            "typosquat", "https://typo.example/", "https://scam.example/alert", path, _decision(True, 0.99)
        )
        assert flipped.record_id == first.record_id
        assert flipped.status_changed is True
        assert len(store.alerts.alerts) == 1
        assert store.alerts.alerts[0].is_new is False
        assert store.enroller.candidates == [("https://cloak.example/", "typosquat")]

        history = await db.get_detection_history(first.record_id)
        assert len(history) == 1
        assert history[0]["new_status"] == 1
        assert history[0]["reason"].startswith("Changed to scam")
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_search_ad_detection_enrolls_the_ad_destination(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        store = _store(db)
        outcome = await store.record_detection(
            "search_ad",
            "https://ad-dest.example/lp",
            "https://scam.example/alert",
            ["https://ad-dest.example/lp", "https://scam.example/alert"],
            _decision(True),
            ad_text="Call support now",
            enroll_url="https://ad-dest.example/lp",
        )

        assert outcome.is_new is True
        assert store.alerts.alerts[0].ad_text == "Call support now"
        assert store.enroller.candidates == [("https://ad-dest.example/lp", "search_ad")]
    finally:
        await db.close()


class _Channel:
    """Records everything that would be posted to the alert chat."""

    def __init__(self):
        self.messages = []

    async def send_message(self, text, parse_mode=None):
        self.messages.append(text)
        return True

    async def send_scam_alert(self, alert):
        return await self.send_message(f"scam alert: {alert.final_url}")


class _Blocklist(BaseReporter):
    platform_name = "blocklist"

    def __init__(self):
        super().__init__()
        self._configured = True
        self.submitted = []

    async def submit(self, urls):
        self.submitted.extend(urls)
        return ReportResult(platform=self.platform_name, status=ReportStatus.SUBMITTED, urls=tuple(urls))


@pytest.mark.asyncio
async def test_new_scam_posts_a_single_channel_message(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        source_id = await db.add_source("https://src.example/", "http")
        source = await db.get_source_by_id(source_id)
        channel = _Channel()
        blocklist = _Blocklist()
        reports = ReportManager([blocklist], BatchReportQueue())
        store = DestinationStore(db, alerts=channel, reports=reports)

        await store.record_destination(
            source,
            "https://scam.herokuapp.com/",
            _decision(True, 0.99),
            redirect_path=["https://src.example/", "https://scam.herokuapp.com/"],
            signals=DetectedSignals(is_third_party_hosting=True),
        )

        assert channel.messages == ["scam alert: https://scam.herokuapp.com/"]
        assert blocklist.submitted == ["https://scam.herokuapp.com/"]
    finally:
        await db.close()
