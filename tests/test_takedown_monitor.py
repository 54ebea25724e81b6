"""Tests for the periodic takedown sweep."""

import httpx
import pytest

from cloakwatch.analyzer.takedown_checker import DnsStatus, NetcraftVerdict, SmartScreenVerdict
from cloakwatch.pipeline.takedown_monitor import TakedownMonitor
from cloakwatch.storage.database import Database


class _FakeChecker:
    def __init__(self, *, dns=DnsStatus.RESOLVES, netcraft=False, smartscreen=False, safebrowsing=()):
        self.safebrowsing_api_key = "key" if safebrowsing else ""
        self.user_agent = ""
        self.dns = dns
        self.netcraft = netcraft
        self.smartscreen = smartscreen
        self.safebrowsing = set(safebrowsing)
        self.calls = []

    async def check_dns(self, url):
        self.calls.append(("dns", url))
        return self.dns

    async def check_safebrowsing(self, urls):
        self.calls.append(("safebrowsing", tuple(urls)))
        return self.safebrowsing & set(urls)

    async def check_netcraft(self, url):
        self.calls.append(("netcraft", url))
        if isinstance(self.netcraft, Exception):
            raise self.netcraft
        return NetcraftVerdict(flagged=self.netcraft)

    async def check_smartscreen(self, url):
        self.calls.append(("smartscreen", url))
        return SmartScreenVerdict(flagged=self.smartscreen)


async def _seed(db, url="https://scam.example/alert"):
    source_id = await db.add_source("https://src.example/", "http")
    destination_id = await db.insert_destination(source_id, url, "scam.example/alert", is_scam=True)
    return await db.create_takedown_status(destination_id)


@pytest.mark.asyncio
async def test_nxdomain_stops_all_further_checks(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        status_id = await _seed(db)
        checker = _FakeChecker(dns=DnsStatus.NXDOMAIN)
        monitor = TakedownMonitor(db, checker, recheck_hours=0)

        stats = await monitor.sweep()
        assert stats.unresolvable == 1
        assert [name for name, _ in checker.calls] == ["dns"]

        row = await db.get_takedown_status_by_id(status_id)
        assert row["dns_unresolvable_at"] is not None
        assert row["check_active"] == 0

        checker.calls.clear()
        stats = await monitor.sweep()
        assert stats.checked == 0
        assert checker.calls == []
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_flagged_services_are_not_checked_again(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        status_id = await _seed(db)
        checker = _FakeChecker(netcraft=True)
        monitor = TakedownMonitor(db, checker, recheck_hours=0)

        stats = await monitor.sweep()
        assert (stats.checked, stats.flagged) == (1, 1)
        row = await db.get_takedown_status_by_id(status_id)
        assert row["netcraft_flagged_at"] is not None
        assert row["smartscreen_flagged_at"] is None
        assert row["last_checked"] is not None

        checker.calls.clear()
        await monitor.sweep()
        assert [name for name, _ in checker.calls] == ["dns", "smartscreen"]
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_service_errors_leave_the_row_for_the_next_sweep(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        status_id = await _seed(db)
        checker = _FakeChecker(netcraft=httpx.ConnectError("down"), smartscreen=True)
        monitor = TakedownMonitor(db, checker, recheck_hours=0)

        stats = await monitor.sweep()
        assert stats.flagged == 1
        row = await db.get_takedown_status_by_id(status_id)
        assert row["netcraft_flagged_at"] is None
        assert row["smartscreen_flagged_at"] is not None
        assert row["check_active"] == 1
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_safebrowsing_is_checked_in_one_batch(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        status_id = await _seed(db)
        checker = _FakeChecker(safebrowsing={"https://scam.example/alert"})
        monitor = TakedownMonitor(db, checker, recheck_hours=0)

        stats = await monitor.sweep()
        assert stats.flagged == 1
        assert checker.calls[0] == ("safebrowsing", ("https://scam.example/alert",))
        row = await db.get_takedown_status_by_id(status_id)
        assert row["safebrowsing_flagged_at"] is not None

        checker.calls.clear()
        await monitor.sweep()
        assert "safebrowsing" not in [name for name, _ in checker.calls]
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_nothing_due_is_a_quiet_sweep(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        checker = _FakeChecker()
        stats = await TakedownMonitor(db, checker).sweep()
        assert (stats.checked, stats.failed) == (0, 0)
        assert checker.calls == []
    finally:
        await db.close()


class _FlagLedger:
    def __init__(self):
        self.flagged = []

    async def mark_service_flagged(self, status_id, service):
        self.flagged.append((status_id, service.value))
        return True


class _ChunkedSafeBrowsing(_FakeChecker):
    def __init__(self, matched, fail_chunk=None):
        super().__init__(safebrowsing=matched)
        self.fail_chunk = fail_chunk

    async def check_safebrowsing(self, urls):
        self.calls.append(("safebrowsing", tuple(urls)))
        if len(self.calls) == self.fail_chunk:
            raise httpx.ConnectError("lookup api down")
        return self.safebrowsing & set(urls)


@pytest.mark.asyncio
async def test_safebrowsing_lookups_are_chunked_at_500():
    rows = [{"id": i, "destination_url": f"https://scam{i}.example/"} for i in range(1201)]
    # A second row for the same URL shares its lookup
    rows.append({"id": 5000, "destination_url": "https://scam0.example/"})
    rows.append({"id": 5001, "destination_url": "https://old.example/", "safebrowsing_flagged_at": "2024-01-01"})
    matched = {"https://scam0.example/", "https://scam700.example/", "https://scam1200.example/"}
    checker = _ChunkedSafeBrowsing(matched, fail_chunk=2)
    ledger = _FlagLedger()

    flagged = await TakedownMonitor(ledger, checker)._sweep_safebrowsing(rows)

    chunks = [urls for name, urls in checker.calls if name == "safebrowsing"]
    assert [len(chunk) for chunk in chunks] == [500, 500, 201]
    assert "https://old.example/" not in {url for chunk in chunks for url in chunk}
    # The failed middle chunk (scam700) is retried next sweep; the others still land
    assert sorted(ledger.flagged) == [(0, "safebrowsing"), (1200, "safebrowsing"), (5000, "safebrowsing")]
    assert flagged == 3
