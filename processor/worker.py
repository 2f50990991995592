"""Worker draining the outbound job queue (analytics writes and scoring)."""

import asyncio
import time
from typing import Dict, Type, Optional, Callable

import structlog
from sqlalchemy.orm import Session

from processor.config import settings
from processor.database import SessionLocal
from processor.queue_manager import QueueManager
from processor.processors.base import BaseProcessor

logger = structlog.get_logger()


class Worker:
    """Claims jobs and runs them on their registered processor.

    Every claim, job and maintenance sweep opens its own session from
    ``session_factory``; concurrent jobs never share one.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        processors: Optional[Dict[str, Type[BaseProcessor]]] = None,
    ):
        self.session_factory = session_factory
        self.processors = dict(processors or {})
        self.running = False
        self.in_flight: Dict[int, asyncio.Task] = {}
        self.max_concurrency = settings.QUEUE_MAX_CONCURRENCY
        self.poll_interval = settings.QUEUE_POLL_INTERVAL
        self.maintenance_interval = settings.MAINTENANCE_INTERVAL
        self._next_maintenance = 0.0

    def register_processor(self, processor_class: Type[BaseProcessor]) -> None:
        self.processors[processor_class.job_type] = processor_class
        logger.info("Processor registered", job_type=processor_class.job_type)

    def _claim(self) -> Optional[dict]:
        db = self.session_factory()
        try:
            return QueueManager(db).claim_next()
        finally:
            db.close()

    async def process_job(self, job: dict) -> None:
        """Run one claimed job, then mark it completed or failed."""
        job_id = job["id"]
        job_type = job["job_type"]
        log = logger.bind(job_id=job_id, job_type=job_type, attempt=job.get("attempts"))

        db = self.session_factory()
        queue = QueueManager(db)
        try:
            processor_class = self.processors.get(job_type)
            if processor_class is None:
                raise ValueError(f"No processor registered for job type: {job_type}")

            log.info("Processing job", assessment_id=job.get("assessment_id"))
            started = time.monotonic()
            await processor_class(db, queue).process(
                assessment_id=job.get("assessment_id"),
                payload=job.get("payload"),
            )
            queue.complete(job_id)
            log.info("Job completed", duration_ms=int((time.monotonic() - started) * 1000))

        except Exception as e:
            log.error("Job failed", error=str(e), exc_info=True)
            # Drop anything the processor left half-written before recording the failure
            db.rollback()
            queue.fail(job_id, str(e))

        finally:
            db.close()
            self.in_flight.pop(job_id, None)

    async def run_once(self) -> Optional[dict]:
        """Claim and process one job inline. Returns the job, or None when idle."""
        job = self._claim()
        if job:
            await self.process_job(job)
        return job

    async def run(self) -> None:
        """Poll the queue until stopped, keeping at most ``max_concurrency`` jobs in flight."""
        self.running = True
        logger.info(
            "Worker started",
            max_concurrency=self.max_concurrency,
            job_types=sorted(self.processors),
        )

        while self.running:
            for job_id in [job_id for job_id, task in self.in_flight.items() if task.done()]:
                del self.in_flight[job_id]

            if time.monotonic() >= self._next_maintenance:
                self._next_maintenance = time.monotonic() + self.maintenance_interval
                await self.run_maintenance()

            if len(self.in_flight) >= self.max_concurrency:
                await asyncio.sleep(1)
                continue

            job = self._claim()
            if job is None:
                await asyncio.sleep(self.poll_interval)
                continue

            self.in_flight[job["id"]] = asyncio.create_task(self.process_job(job))

        logger.info("Worker stopped")

    async def run_maintenance(self) -> dict:
        """Recover stuck jobs, prune old ones and repair assessments the API left behind."""
        counts = {}
        db = self.session_factory()
        try:
            queue = QueueManager(db)
            counts["stuck_jobs"] = queue.recover_stuck_jobs(
                stuck_threshold_minutes=settings.STUCK_JOB_MINUTES
            )
            counts["cleared_jobs"] = queue.clear_completed(
                older_than_hours=settings.COMPLETED_JOB_RETENTION_HOURS
            )
            counts["healed_assessments"] = queue.heal_stuck_assessments(
                stuck_threshold_minutes=settings.STUCK_ASSESSMENT_MINUTES
            )
            counts["unscored_assessments"] = queue.recover_unscored_assessments(
                stuck_threshold_minutes=settings.STUCK_ASSESSMENT_MINUTES
            )
            if any(counts.values()):
                logger.info("Maintenance completed", **counts, queue=queue.get_status())
        except Exception as e:
            db.rollback()
            logger.error("Maintenance failed", error=str(e))
        finally:
            db.close()
        return counts

    async def stop(self) -> None:
        """Stop polling and wait for in-flight jobs."""
        self.running = False
        if self.in_flight:
            logger.info("Waiting for in-flight jobs", count=len(self.in_flight))
            await asyncio.gather(*self.in_flight.values(), return_exceptions=True)
        logger.info("Worker shutdown complete")
