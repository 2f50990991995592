"""Processor entry point: drains the jobs table written by the API.

Run with ``python -m processor.main``.
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

import structlog

from processor.config import settings
from processor.database import SessionLocal
from processor.processors import RecordAnalyticsProcessor, ScoreAssessmentProcessor
from processor.worker import Worker

logger = structlog.get_logger()


def configure_logging() -> None:
    """stdlib-backed structlog; ``LOG_FORMAT=console`` for local runs."""
    # filter_by_level reads the stdlib level, so basicConfig must run first
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.LOG_FORMAT == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class ProcessorService:
    """Owns the worker task and its shutdown."""

    def __init__(self):
        self.worker = Worker(SessionLocal)
        self.worker.register_processor(RecordAnalyticsProcessor)
        self.worker.register_processor(ScoreAssessmentProcessor)
        self.task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        logger.info("Starting processor service", model=settings.CLAUDE_MODEL)
        if not settings.ANTHROPIC_API_KEY:
            logger.warning("ANTHROPIC_API_KEY not set; scoring will use fallback scores")

        self.task = asyncio.create_task(self.worker.run(), name="worker")
        try:
            await self.task
        except asyncio.CancelledError:
            logger.info("Worker task cancelled")

    async def stop(self) -> None:
        logger.info("Stopping processor service")
        await self.worker.stop()
        if self.task and not self.task.done():
            self.task.cancel()
        logger.info("Processor service stopped")


async def main() -> None:
    configure_logging()
    service = ProcessorService()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(service.stop()))

    try:
        await service.start()
    except Exception as e:
        logger.error("Processor service error", error=str(e), exc_info=True)
        await service.stop()
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
