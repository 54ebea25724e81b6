"""Main entry point for the CloakWatch pipeline."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from ..config import load_config, validate_config
from .runner_core import CloakWatchPipelineCoreMixin
from .runner_loops import CloakWatchPipelineLoopsMixin

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


class CloakWatchPipeline(
    CloakWatchPipelineCoreMixin,
    CloakWatchPipelineLoopsMixin,
):
    """Main orchestrator for redirect monitoring, hunting and takedown tracking."""

    pass


async def run_pipeline():
    """Run the CloakWatch pipeline."""
    config = load_config()

    validation_errors = validate_config(config)
    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        sys.exit(1)

    pipeline = CloakWatchPipeline(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(pipeline.stop()))

    try:
        await pipeline.start()
    except KeyboardInterrupt:
        pass
    finally:
        await pipeline.stop()


def main():
    """Entry point."""
    asyncio.run(run_pipeline())


if __name__ == "__main__":
    main()
