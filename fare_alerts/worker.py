"""
Headless entry point: runs the matching engine until SIGINT or SIGTERM.
"""

import asyncio
import logging
import signal

from .core.config import settings
from .core.lifecycle import PipelineRuntime
from .core.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _install_signal_handlers(runtime: PipelineRuntime) -> None:
    loop = asyncio.get_running_loop()

    def signal_handler(signum):
        logger.info(f"Received signal {signum}, initiating graceful shutdown")
        runtime.cancel_event.set()

    for signum in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(signum, signal_handler, signum)
        except NotImplementedError:
            signal.signal(signum, lambda s, frame: loop.call_soon_threadsafe(signal_handler, s))


async def run_worker() -> None:
    async with PipelineRuntime(settings) as runtime:
        _install_signal_handlers(runtime)
        await runtime.cancel_event.wait()


def main() -> None:
    setup_logging(settings.log_level, settings.log_json)
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
