"""Fixed-interval loops with fire-and-forget ticks."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

LoopCallback = Callable[[], Awaitable[object]]


@dataclass
class LoopStats:
    runs: int = 0
    failures: int = 0
    timeouts: int = 0
    skipped: int = 0
    in_flight: int = 0
    last_started: Optional[float] = None
    last_finished: Optional[float] = None
    last_error: Optional[str] = None


@dataclass
class _Loop:
    name: str
    interval: float
    callback: LoopCallback
    timeout: Optional[float]
    allow_overlap: bool
    stats: LoopStats = field(default_factory=LoopStats)
    ticks: set = field(default_factory=set)
    driver: Optional[asyncio.Task] = None


class Scheduler:
    """
    Runs each registered callback every `interval` seconds.

    A tick is started with `asyncio.create_task` and the loop does not wait
    for it, so a run that outlives the interval overlaps with the next one.
    Loops registered with `allow_overlap=False` skip a tick while the
    previous run is still in flight. Errors and timeouts are logged and
    counted; they never stop the loop.
    """

    def __init__(self):
        self._loops: dict[str, _Loop] = {}
        self._stopping = asyncio.Event()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def add_loop(
        self,
        name: str,
        interval: float,
        callback: LoopCallback,
        timeout: Optional[float] = None,
        allow_overlap: bool = True,
    ) -> None:
        if name in self._loops:
            raise ValueError(f"Loop {name!r} is already registered")
        if interval <= 0:
            raise ValueError(f"Loop {name!r} needs a positive interval, got {interval}")
        if timeout is not None and timeout <= 0:
            raise ValueError(f"Loop {name!r} needs a positive timeout, got {timeout}")

        loop = _Loop(
            name=name,
            interval=float(interval),
            callback=callback,
            timeout=timeout,
            allow_overlap=allow_overlap,
        )
        self._loops[name] = loop
        if self._running:
            self._start_driver(loop)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._stopping.clear()
        for loop in self._loops.values():
            self._start_driver(loop)
        logger.info("Scheduler started with %d loop(s): %s", len(self._loops), ", ".join(self._loops))

    def _start_driver(self, loop: _Loop) -> None:
        loop.driver = asyncio.create_task(self._drive(loop), name=f"scheduler:{loop.name}")

    async def _drive(self, loop: _Loop) -> None:
        # First tick runs immediately.
        while not self._stopping.is_set():
            self._tick(loop)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=loop.interval)
            except asyncio.TimeoutError:
                continue

    def _tick(self, loop: _Loop) -> None:
        if not loop.allow_overlap and loop.ticks:
            loop.stats.skipped += 1
            logger.debug("Skipping %s tick; previous run still in flight", loop.name)
            return
        task = asyncio.create_task(self._run_once(loop), name=f"{loop.name}:tick")
        loop.ticks.add(task)
        task.add_done_callback(loop.ticks.discard)

    async def _run_once(self, loop: _Loop) -> None:
        stats = loop.stats
        stats.runs += 1
        stats.in_flight += 1
        stats.last_started = time.time()
        try:
            if loop.timeout:
                await asyncio.wait_for(loop.callback(), timeout=loop.timeout)
            else:
                await loop.callback()
        except asyncio.TimeoutError:
            stats.timeouts += 1
            stats.last_error = f"timed out after {loop.timeout}s"
            logger.warning("Loop %s timed out after %ss", loop.name, loop.timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            stats.failures += 1
            stats.last_error = str(exc) or exc.__class__.__name__
            logger.exception("Loop %s failed", loop.name)
        finally:
            stats.in_flight -= 1
            stats.last_finished = time.time()

    async def stop(self, grace: float = 10.0) -> None:
        """Stop all loops, wait up to `grace` seconds for running ticks, then cancel them."""
        if not self._running:
            return
        self._running = False
        self._stopping.set()

        drivers = [loop.driver for loop in self._loops.values() if loop.driver]
        await asyncio.gather(*drivers, return_exceptions=True)
        for loop in self._loops.values():
            loop.driver = None

        pending: set[asyncio.Task] = set()
        for loop in self._loops.values():
            pending.update(loop.ticks)
        if not pending:
            logger.info("Scheduler stopped")
            return

        _, still_running = await asyncio.wait(pending, timeout=grace)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("Cancelled %d tick(s) still running after %ss", len(still_running), grace)
        logger.info("Scheduler stopped")

    def stats(self) -> dict[str, dict]:
        return {name: asdict(loop.stats) for name, loop in self._loops.items()}
