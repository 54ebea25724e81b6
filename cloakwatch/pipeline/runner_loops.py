"""Periodic loops wired into the scheduler."""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class CloakWatchPipelineLoopsMixin:
    """Registers the redirect, takedown, reporting, hunting and pruning loops."""

    def _register_loops(self) -> None:
        config = self.config
        self.scheduler.add_loop(
            "redirect_check",
            config.redirect_check_interval,
            self.redirect_monitor.check_all,
        )
        self.scheduler.add_loop(
            "takedown_sweep",
            config.takedown_check_interval,
            self.takedown_monitor.sweep,
        )
        self.scheduler.add_loop(
            "report_flush",
            config.batch_flush_interval,
            self.batch_queue.flush,
        )
        self.scheduler.add_loop(
            "source_prune",
            config.prune_interval_hours * 3600,
            self.pruner.prune,
            allow_overlap=False,
        )
        if self.hunters:
            self.scheduler.add_loop(
                "hunt",
                config.hunt_interval,
                self._run_hunters,
                allow_overlap=False,
            )

    async def _run_hunters(self) -> None:
        """All hunters in parallel, each bounded by the hunt timeout."""
        timeout = self.config.hunt_timeout

        async def _bounded(hunter):
            try:
                return await asyncio.wait_for(hunter.hunt(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.error("%s hunting timed out after %ss", hunter.name, timeout)
                return False

        logger.info("Starting hunting cycle...")
        results = await asyncio.gather(*(_bounded(h) for h in self.hunters), return_exceptions=True)
        for hunter, result in zip(self.hunters, results):
            if isinstance(result, Exception):
                logger.error("Error during %s hunting: %s", hunter.name, result)
        logger.info("Completed hunting cycle")
