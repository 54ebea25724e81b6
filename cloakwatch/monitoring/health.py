"""Health and metrics endpoints for CloakWatch."""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from aiohttp import web

logger = logging.getLogger(__name__)

METRIC_PREFIX = "cloakwatch"


def _metric_name(*parts: str) -> str:
    return "_".join(str(part).replace(".", "_").replace("-", "_").replace(":", "_") for part in parts)


def flatten_metrics(data: dict, prefix: str = METRIC_PREFIX) -> Iterator[tuple[str, float]]:
    """Numeric leaves of a nested status dict as (metric_name, value) pairs."""
    for key, value in data.items():
        name = _metric_name(prefix, key)
        if isinstance(value, bool):
            yield name, int(value)
        elif isinstance(value, (int, float)):
            yield name, value
        elif isinstance(value, dict):
            yield from flatten_metrics(value, name)


class HealthServer:
    """Serves /healthz (JSON) and /metrics (plain-text gauges)."""

    def __init__(
        self,
        host: str,
        port: int,
        status_provider: Callable[[], dict],
        enabled: bool = True,
    ):
        self.host = host
        self.port = port
        self.status_provider = status_provider
        self.enabled = enabled
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self):
        """Start the health server."""
        if not self.enabled:
            logger.info("Health server disabled")
            return

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        logger.info("Health server listening on %s:%s", self.host, self.port)

    async def stop(self):
        """Stop the health server."""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None

    def _snapshot(self) -> dict:
        try:
            return dict(self.status_provider() or {})
        except Exception as exc:
            logger.warning("Health status provider failed: %s", exc)
            return {"status": "error", "message": str(exc)}

    async def _handle_health(self, request):  # noqa: ANN001
        payload = self._snapshot()
        payload.setdefault("status", "ok")
        return web.json_response(payload)

    async def _handle_metrics(self, request):  # noqa: ANN001
        lines = [f"{name} {value}" for name, value in flatten_metrics(self._snapshot())]
        if not lines:
            lines.append(f'{METRIC_PREFIX}_status{{state="empty"}} 1')
        return web.Response(text="\n".join(lines) + "\n")
