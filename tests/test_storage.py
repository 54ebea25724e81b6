"""Tests for the SQLite storage layer."""

import pytest

from cloakwatch.storage.database import Database
from cloakwatch.storage.enums import TakedownService


async def _scam_destination(db, source_url="https://src.example/"):
    source_id = await db.add_source(source_url, "http")
    destination_id = await db.insert_destination(
        source_id,
        "https://scam.example/alert",
        "scam.example/alert",
        is_scam=True,
        confidence=0.95,
        signals={"fullscreen_requested": True},
        redirect_path=[source_url, "https://scam.example/alert"],
    )
    status_id = await db.create_takedown_status(destination_id)
    return source_id, destination_id, status_id


@pytest.mark.asyncio
async def test_add_source_rejects_duplicates_and_tracks_host(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        first = await db.add_source("https://www.Cloaker.example/a", "browser", origin="typosquat")
        assert first is not None
        assert await db.add_source("https://www.Cloaker.example/a", "http") is None

        assert await db.source_host_exists("http://cloaker.example/other/path") is True
        assert await db.source_host_exists("https://elsewhere.example/") is False

        row = await db.get_source_by_id(first)
        assert row["host"] == "cloaker.example"
        assert row["origin"] == "typosquat"
        assert row["resolution_type"] == "browser"
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_destination_rows_decode_json(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        source_id, destination_id, _ = await _scam_destination(db)

        row = await db.find_destination(source_id, "scam.example/alert")
        assert row["id"] == destination_id
        assert row["signals"] == {"fullscreen_requested": True}
        assert row["redirect_path"] == ["https://src.example/", "https://scam.example/alert"]
        assert await db.find_destination(source_id, "scam.example/other") is None

        assert await db.count_destinations() == 1
        assert await db.count_destinations(scam_only=True) == 1
        assert await db.count_destinations_by_source() == {source_id: 1}
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_takedown_status_is_created_once(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        _, destination_id, status_id = await _scam_destination(db)
        assert await db.create_takedown_status(destination_id) == status_id
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_service_flags_are_write_once(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        _, _, status_id = await _scam_destination(db)

        assert await db.mark_service_flagged(status_id, TakedownService.NETCRAFT) is True
        first = (await db.get_takedown_status_by_id(status_id))["netcraft_flagged_at"]
        assert first is not None

        assert await db.mark_service_flagged(status_id, "netcraft") is False
        assert (await db.get_takedown_status_by_id(status_id))["netcraft_flagged_at"] == first

        with pytest.raises(ValueError):
            await db.mark_service_flagged(status_id, "virustotal")
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_nxdomain_is_terminal(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        _, _, status_id = await _scam_destination(db)

        assert len(await db.get_due_takedown_checks(3600)) == 1
        assert await db.mark_dns_unresolvable(status_id) is True
        assert await db.mark_dns_unresolvable(status_id) is False

        row = await db.get_takedown_status_by_id(status_id)
        assert row["check_active"] == 0
        assert row["dns_unresolvable_at"] is not None

        assert await db.mark_service_flagged(status_id, TakedownService.SMARTSCREEN) is False
        assert await db.get_due_takedown_checks(0) == []
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_due_checks_respect_recheck_window(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        _, _, status_id = await _scam_destination(db)

        due = await db.get_due_takedown_checks(3600)
        assert [row["id"] for row in due] == [status_id]
        assert due[0]["destination_url"] == "https://scam.example/alert"

        await db.touch_last_checked(status_id)
        assert await db.get_due_takedown_checks(3600) == []
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_summary_and_recent_takedowns(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        _, _, flagged_id = await _scam_destination(db, "https://one.example/")
        await _scam_destination(db, "https://two.example/")
        await db.mark_service_flagged(flagged_id, TakedownService.SAFEBROWSING)

        summary = await db.get_takedown_summary()
        assert summary["total"] == 2
        assert summary["active"] == 2
        assert summary["safebrowsing"] == 1
        assert summary["netcraft"] == 0
        assert summary["dns_unresolvable"] == 0

        recent = await db.get_recent_takedowns()
        assert [row["id"] for row in recent] == [flagged_id]
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_removing_a_source_cascades(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        source_id, destination_id, _ = await _scam_destination(db)

        assert await db.remove_source("https://src.example/") is True
        assert await db.remove_source("https://src.example/") is False
        assert await db.get_source_by_id(source_id) is None
        assert await db.count_destinations() == 0
        assert await db.get_takedown_status(destination_id) is None
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        with pytest.raises(RuntimeError):
            async with db.transaction() as tx:
                await tx.add_source("https://src.example/", "http")
                raise RuntimeError("boom")

        assert await db.get_source("https://src.example/") is None

        async with db.transaction() as tx:
            await tx.add_source("https://src.example/", "http")
        assert await db.get_source("https://src.example/") is not None
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_detections_and_history(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        detection_id = await db.insert_detection(
            "search_ad",
            "https://ad.example/landing",
            "scam.example/alert",
            final_url="https://scam.example/alert",
            redirect_path=["https://ad.example/landing", "https://scam.example/alert"],
            is_scam=False,
            confidence_score=0.4,
            ad_text="Fix your PC",
        )

        found = await db.find_detection("search_ad", "scam.example/alert")
        assert found["id"] == detection_id
        assert found["redirect_path"][-1] == "https://scam.example/alert"
        assert await db.find_detection("typosquat", "scam.example/alert") is None

        by_initial = await db.find_detection_by_initial_url("search_ad", "https://ad.example/landing")
        assert by_initial["id"] == detection_id

        await db.set_detection_status(detection_id, previous_status=False, new_status=True, reason="flip")
        assert await db.count_detections(scam_only=True) == 1

        history = await db.get_detection_history(detection_id)
        assert len(history) == 1
        assert (history[0]["previous_status"], history[0]["new_status"]) == (0, 1)
        assert history[0]["reason"] == "flip"
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_inactive_sources(tmp_path):
    db = Database(tmp_path / "cloakwatch.db")
    await db.connect()
    try:
        stale_id = await db.add_source("https://stale.example/", "http")
        busy_id, destination_id, _ = await _scam_destination(db, "https://busy.example/")
        fresh_id = await db.add_source("https://fresh.example/", "http")

        await db._connection.execute(
            "UPDATE sources SET created_at = datetime('now', '-10 days') WHERE id IN (?, ?)",
            (stale_id, busy_id),
        )
        await db.touch_destination(destination_id)

        inactive = await db.get_inactive_sources(5)
        assert [row["id"] for row in inactive] == [stale_id]
        assert fresh_id not in {row["id"] for row in inactive}
    finally:
        await db.close()
