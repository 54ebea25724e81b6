"""Record observed destinations and hunting detections, alert on new scams."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..analyzer.decision import Decision
from ..analyzer.signals import DetectedSignals
from ..bot.formatters import ScamAlert
from ..resolver.enrollment import cloaker_candidate
from ..storage.enums import HuntType, SourceOrigin
from ..utils.urls import DEFAULT_VOLATILE_QUERY_PARAMS, destination_match_key, normalize_url

logger = logging.getLogger(__name__)


@dataclass
class RecordOutcome:
    """What a single observation did to the store."""

    record_id: int
    is_new: bool
    is_scam: bool
    status_changed: bool = False
    alerted: bool = False
    enrolled: Optional[bool] = None


class DestinationStore:
    """
    Deduplicates observations on a host+path key and runs the follow-up
    for new scams (alert, report, cloaker enrolment) once the write has
    committed. A failed write is rolled back and produces no side effects.
    """

    def __init__(
        self,
        database,
        alerts=None,
        reports=None,
        enroller=None,
        volatile_params: Iterable[str] = DEFAULT_VOLATILE_QUERY_PARAMS,
    ):
        self.database = database
        self.alerts = alerts
        self.reports = reports
        self.enroller = enroller
        self.volatile_params = tuple(volatile_params)

    async def record_destination(
        self,
        source: dict,
        final_url: str,
        decision: Decision,
        redirect_path: Optional[list[str]] = None,
        signals: Optional[DetectedSignals] = None,
    ) -> RecordOutcome:
        match_key = destination_match_key(final_url)
        stored_url = normalize_url(final_url, self.volatile_params)
        path = list(redirect_path or [])

        async with self.database.transaction() as tx:
            existing = await tx.find_destination(source["id"], match_key)
            if existing:
                await tx.touch_destination(existing["id"])
                return RecordOutcome(existing["id"], is_new=False, is_scam=bool(existing["is_scam"]))

            destination_id = await tx.insert_destination(
                source["id"],
                stored_url,
                match_key,
                is_scam=decision.is_scam,
                confidence=decision.confidence,
                signals=signals.to_dict() if signals else None,
                redirect_path=path,
            )
            if decision.is_scam:
                await tx.create_takedown_status(destination_id)

        outcome = RecordOutcome(destination_id, is_new=True, is_scam=decision.is_scam)
        logger.info(
            "New destination %s for %s (%s)",
            stored_url,
            source["url"],
            "scam" if decision.is_scam else "not scam",
        )
        if not decision.is_scam:
            return outcome

        candidate = cloaker_candidate(path)
        alert = ScamAlert(
            kind="redirect",
            initial_url=source["url"],
            final_url=stored_url,
            confidence=decision.confidence,
            redirect_path=path or [source["url"], stored_url],
            cloaker_candidate=candidate,
            signals=signals.active() if signals else [],
        )
        outcome.alerted = await self._alert(alert)

        if self.reports is not None:
            await self.reports.report_site(stored_url)

        if candidate and candidate != source["url"]:
            outcome.enrolled = await self._enroll(candidate, SourceOrigin.REDIRECT_MONITOR)
        return outcome

    async def record_detection(
        self,
        hunt_type: HuntType | str,
        initial_url: str,
        final_url: str,
        redirect_path: list[str],
        decision: Decision,
        signals: Optional[DetectedSignals] = None,
        ad_text: Optional[str] = None,
        enroll_url: Optional[str] = None,
    ) -> RecordOutcome:
        """
        Insert or refresh a hunting detection.

        `enroll_url` overrides the cloaker candidate taken from the redirect
        path (search ads enrol the ad destination itself).
        """
        hunt = HuntType(hunt_type)
        match_key = destination_match_key(final_url)
        signal_data = signals.to_dict() if signals else None

        async with self.database.transaction() as tx:
            existing = await tx.find_detection(hunt.value, match_key)
            if existing:
                previous = bool(existing["is_scam"])
                await tx.update_detection_observation(
                    existing["id"],
                    final_url=final_url,
                    redirect_path=redirect_path,
                    confidence_score=decision.confidence,
                    signals=signal_data,
                )
                changed = previous != decision.is_scam
                if changed:
                    reason = (
                        f"Changed to scam with confidence {decision.confidence}"
                        if decision.is_scam
                        else "No longer classified as scam"
                    )
                    await tx.set_detection_status(
                        existing["id"],
                        previous_status=previous,
                        new_status=decision.is_scam,
                        reason=reason,
                    )
                outcome = RecordOutcome(
                    existing["id"], is_new=False, is_scam=decision.is_scam, status_changed=changed
                )
            else:
                detection_id = await tx.insert_detection(
                    hunt.value,
                    initial_url,
                    match_key,
                    final_url=final_url,
                    redirect_path=redirect_path,
                    is_scam=decision.is_scam,
                    confidence_score=decision.confidence,
                    signals=signal_data,
                    ad_text=ad_text,
                )
                outcome = RecordOutcome(detection_id, is_new=True, is_scam=decision.is_scam)

        if outcome.status_changed:
            logger.info("Detection %s status changed to %s", outcome.record_id, decision.is_scam)
        if not decision.is_scam or not (outcome.is_new or outcome.status_changed):
            return outcome

        candidate = enroll_url or cloaker_candidate(redirect_path)
        alert = ScamAlert(
            kind=hunt.value,
            initial_url=initial_url,
            final_url=final_url,
            confidence=decision.confidence,
            redirect_path=list(redirect_path),
            is_new=outcome.is_new,
            ad_text=ad_text,
            cloaker_candidate=candidate,
            signals=signals.active() if signals else [],
        )
        outcome.alerted = await self._alert(alert)
        if candidate:
            outcome.enrolled = await self._enroll(candidate, SourceOrigin(hunt.value))
        return outcome

    async def _alert(self, alert: ScamAlert) -> bool:
        if self.alerts is None:
            return False
        return bool(await self.alerts.send_scam_alert(alert))

    async def _enroll(self, candidate: str, origin: SourceOrigin) -> Optional[bool]:
        if self.enroller is None:
            return None
        enrolled = await self.enroller.try_enroll(candidate, origin)
        logger.info("Auto-enrol %s: %s", candidate, "success" if enrolled else "failed")
        return enrolled
