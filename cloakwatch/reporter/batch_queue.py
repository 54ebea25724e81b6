"""Per-service pending URL sets, drained on a fixed interval."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

SubmitFn = Callable[[list[str]], Awaitable[object]]


@dataclass
class _ServiceQueue:
    name: str
    submit: SubmitFn
    max_per_interval: Optional[int] = None
    # dict keeps insertion order; values are unused
    pending: dict[str, None] = field(default_factory=dict)
    drain_task: Optional[asyncio.Task] = None
    submitted: int = 0
    failed: int = 0

    def take(self, limit: Optional[int] = None) -> list[str]:
        urls = list(self.pending)[: limit or None]
        for url in urls:
            del self.pending[url]
        return urls


class BatchReportQueue:
    """
    Batched submission to reporting services.

    Each service has its own set of pending URLs. `flush()` drains every
    service independently. A service with `max_per_interval` sends at most
    that many URLs per chunk and sleeps `interval` seconds between chunks
    until its set is empty; only one such drain runs per service at a time.

    URLs leave the queue whether or not their submission succeeded.
    """

    def __init__(self, interval: float = 60.0):
        self.interval = interval
        self._services: dict[str, _ServiceQueue] = {}
        self._closed = False
        self._stop = asyncio.Event()

    def register(self, name: str, submit: SubmitFn, max_per_interval: Optional[int] = None) -> None:
        if max_per_interval is not None and max_per_interval < 1:
            raise ValueError("max_per_interval must be >= 1")
        if name in self._services:
            raise ValueError(f"Service already registered: {name}")
        self._services[name] = _ServiceQueue(name, submit, max_per_interval)

    @property
    def services(self) -> list[str]:
        return list(self._services)

    def add(self, name: str, url: str) -> bool:
        """Queue a URL. False if it is already pending or the queue is shut down."""
        service = self._services[name]
        if self._closed:
            logger.warning("Batch queue closed; dropping %s for %s", url, name)
            return False
        if url in service.pending:
            return False
        service.pending[url] = None
        return True

    def pending_count(self, name: Optional[str] = None) -> int:
        if name is not None:
            return len(self._services[name].pending)
        return sum(len(s.pending) for s in self._services.values())

    def stats(self) -> dict[str, dict[str, int]]:
        return {
            name: {"pending": len(s.pending), "submitted": s.submitted, "failed": s.failed}
            for name, s in self._services.items()
        }

    async def flush(self) -> None:
        await asyncio.gather(*(self._flush_service(s) for s in self._services.values()))

    async def _flush_service(self, service: _ServiceQueue) -> None:
        if not service.pending:
            return

        if service.max_per_interval is None:
            await self._send(service, service.take())
            return

        if service.drain_task is not None and not service.drain_task.done():
            logger.debug("%s drain already in progress", service.name)
            return
        service.drain_task = asyncio.create_task(self._drain(service))
        await asyncio.wait({service.drain_task})

    async def _drain(self, service: _ServiceQueue) -> None:
        while service.pending and not self._stop.is_set():
            await self._send(service, service.take(service.max_per_interval))
            if not service.pending:
                break
            logger.info(
                "%s: %d URL(s) left, continuing in %.0fs",
                service.name,
                len(service.pending),
                self.interval,
            )
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    async def _send(self, service: _ServiceQueue, urls: list[str]) -> bool:
        if not urls:
            return True
        try:
            result = await service.submit(urls)
        except Exception:
            logger.exception("%s batch submission failed (%d URLs dropped)", service.name, len(urls))
            service.failed += len(urls)
            return False

        ok = getattr(result, "ok", True)
        if ok:
            service.submitted += len(urls)
            logger.info("%s: submitted %d URL(s)", service.name, len(urls))
        else:
            service.failed += len(urls)
            logger.warning(
                "%s: submission of %d URL(s) failed: %s",
                service.name,
                len(urls),
                getattr(result, "message", result),
            )
        return ok

    async def shutdown(self) -> None:
        """
        Final flush. Capped services send one more chunk; anything still
        pending after that is discarded.
        """
        self._closed = True
        self._stop.set()

        drains = [s.drain_task for s in self._services.values() if s.drain_task and not s.drain_task.done()]
        if drains:
            await asyncio.wait(drains)

        async def _final(service: _ServiceQueue) -> None:
            await self._send(service, service.take(service.max_per_interval))
            if service.pending:
                logger.warning(
                    "%s: discarding %d unsent URL(s) at shutdown",
                    service.name,
                    len(service.pending),
                )
                service.pending.clear()

        await asyncio.gather(*(_final(s) for s in self._services.values()))
