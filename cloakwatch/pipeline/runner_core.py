"""Core pipeline setup and lifecycle."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from ..analyzer import (
    BrowserManager,
    ClassificationDecisionEngine,
    PageInspector,
    ScreenshotClassifier,
    TakedownChecker,
    UrlClassifier,
)
from ..bot import AlertBot
from ..config import Config
from ..hunters import AdNetworkHunter, BaseHunter, SearchAdHunter, TyposquatHunter
from ..monitoring.health import HealthServer
from ..reporter import BatchReportQueue, ReportManager
from ..resolver import RedirectResolver, SourceEnroller
from ..storage import Database, EvidenceStore
from ..utils.user_agent import UserAgentProvider
from .destination_store import DestinationStore
from .pruning import SourcePruner
from .redirect_monitor import RedirectMonitor
from .scheduler import Scheduler
from .takedown_monitor import TakedownMonitor

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 10.0


class CloakWatchPipelineCoreMixin:
    """Core lifecycle and wiring for the pipeline."""

    def __init__(self, config: Config):
        self.config = config
        self._running = False
        self._stop_lock = asyncio.Lock()
        self._stop_task: asyncio.Task | None = None
        self._stopped = asyncio.Event()
        self._started_at = datetime.now(timezone.utc)

        self.database = Database(config.db_path)
        self.user_agents = UserAgentProvider()
        self.browsers = BrowserManager(headless=config.browser_headless, proxy_url=config.proxy_url)

        self.evidence_store = EvidenceStore(config.training_dir) if config.save_training_samples else None
        self.url_classifier = UrlClassifier(
            PageInspector(
                self.browsers,
                self.user_agents,
                navigation_timeout=config.navigation_timeout,
                hosting_suffixes=config.hosting_suffixes,
            ),
            ScreenshotClassifier(config.classifier_url),
            evidence=self.evidence_store,
        )
        # Monitored sources and enrolment share one threshold, hunters use a stricter one.
        self.source_engine = ClassificationDecisionEngine(config.classifier_threshold, config.allowlist)
        self.hunter_engine = ClassificationDecisionEngine(config.hunter_confidence_threshold, config.allowlist)

        self.resolver = RedirectResolver(
            self.user_agents,
            self.browsers,
            proxy_url=config.proxy_url,
            fingerprint=config.redirect_fingerprint,
            timeout=config.navigation_timeout,
        )

        self.batch_queue = BatchReportQueue(interval=config.batch_flush_interval)
        self.report_manager = ReportManager.from_config(
            config, self.user_agents, self.batch_queue
        )
        self.bot = AlertBot(
            token=config.telegram_bot_token,
            chat_id=config.telegram_chat_id,
            database=self.database,
            reports=self.report_manager,
        )
        self.enroller = SourceEnroller(
            self.database, self.resolver, self.url_classifier, self.source_engine, alerts=self.bot
        )
        self.store = DestinationStore(
            self.database,
            alerts=self.bot,
            reports=self.report_manager,
            enroller=self.enroller,
            volatile_params=config.volatile_query_params,
        )

        self.redirect_monitor = RedirectMonitor(
            self.database, self.resolver, self.url_classifier, self.source_engine, self.store
        )
        self.takedown_checker = TakedownChecker(
            safebrowsing_api_key=config.safebrowsing_api_key,
            smartscreen_auth_id=config.smartscreen_auth_id,
            user_agent=self.user_agents.cached(),
        )
        self.takedown_monitor = TakedownMonitor(
            self.database,
            self.takedown_checker,
            recheck_hours=config.takedown_recheck_hours,
            concurrency=config.takedown_concurrency,
            user_agents=self.user_agents,
        )
        self.pruner = SourcePruner(
            self.database, self.takedown_checker, inactive_days=config.prune_inactive_days
        )

        self.hunters: list[BaseHunter] = []
        if config.hunters_enabled:
            self.hunters = [
                SearchAdHunter(
                    self.url_classifier,
                    self.hunter_engine,
                    self.store,
                    self.browsers,
                    self.database,
                    search_sites=config.search_sites,
                    search_terms=config.search_terms,
                ),
                TyposquatHunter(
                    self.url_classifier,
                    self.hunter_engine,
                    self.store,
                    config.typosquat_domains,
                ),
            ]
            if config.ad_network_feed_url:
                self.hunters.append(
                    AdNetworkHunter(
                        self.url_classifier,
                        self.hunter_engine,
                        self.store,
                        self.browsers,
                        self.database,
                        feed_url=config.ad_network_feed_url,
                        referer=config.ad_network_referer,
                    )
                )

        self.scheduler = Scheduler()
        self.health_server = HealthServer(
            host=config.health_host,
            port=config.health_port,
            status_provider=self._health_snapshot,
            enabled=config.health_enabled,
        )

    def _health_snapshot(self) -> dict:
        """Provide a lightweight status dict for health endpoints."""
        uptime = (datetime.now(timezone.utc) - self._started_at).total_seconds()
        return {
            "status": "ok" if self._running else "stopped",
            "uptime_seconds": round(uptime, 1),
            "report_queue_size": self.batch_queue.pending_count(),
            "alerts_sent": self.bot.alerts_sent,
            "report_queues": self.batch_queue.stats(),
            "loops": self.scheduler.stats(),
        }

    async def start(self):
        """Start all pipeline components and block until stop() completes."""
        logger.info("Starting CloakWatch pipeline...")
        self._running = True

        await self.database.connect()
        logger.info("Database connected")

        await self.browsers.start()

        await self.bot.start()

        self._register_loops()
        self.scheduler.start()

        await self.health_server.start()

        sources = await self.database.list_sources()
        note = f"Monitoring {len(sources)} redirect source(s)"
        if self.hunters:
            note += f", hunting with {', '.join(h.name for h in self.hunters)}"
        await self.bot.send_message(f"CloakWatch started\n{note}")
        logger.info("Pipeline running")

        await self._stopped.wait()

    async def stop(self):
        """Stop all pipeline components."""
        async with self._stop_lock:
            if self._stop_task is None:
                self._stop_task = asyncio.create_task(self._stop_impl())
            stop_task = self._stop_task
        await stop_task

    async def _stop_impl(self):
        """One-shot shutdown implementation (idempotent via stop())."""
        logger.info("Stopping CloakWatch pipeline...")
        self._running = False

        await self.scheduler.stop(grace=SHUTDOWN_GRACE_SECONDS)
        await self.batch_queue.shutdown()
        await self.report_manager.close()

        await self.bot.send_message("CloakWatch stopping...")
        await self.bot.stop()
        await self.health_server.stop()
        await self.browsers.stop()
        await self.database.close()

        self._stopped.set()
        logger.info("Pipeline stopped")
