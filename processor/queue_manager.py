"""Queue manager for reliable job execution over the ``jobs`` table."""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.orm import Session

from processor.config import settings

logger = structlog.get_logger()

SCORE_ASSESSMENT = "score_assessment"


def utcnow() -> datetime:
    """Naive UTC, the form timestamps are stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _timestamps(query: str, *names: str):
    """Textual query whose named parameters bind as DateTime on every backend."""
    return text(query).bindparams(*(bindparam(name, type_=DateTime()) for name in names))


class QueueManager:
    """Manages the job queue.

    Claiming is a conditional UPDATE on ``status = 'pending'``, so two workers
    racing for the same row cannot both win.
    """

    def __init__(self, db: Session):
        self.db = db
        self.max_attempts = settings.QUEUE_MAX_ATTEMPTS
        self.retry_base_delay = settings.QUEUE_RETRY_BASE_DELAY

    def enqueue(
        self,
        job_type: str,
        assessment_id: Optional[int] = None,
        priority: int = 0,
        scheduled_for: Optional[datetime] = None,
        payload: Optional[dict] = None,
        max_attempts: Optional[int] = None,
    ) -> int:
        """Add a job to the queue.

        Args:
            job_type: Type of job (record_analytics, score_assessment)
            assessment_id: Associated assessment ID
            priority: Higher = processed first (default 0)
            scheduled_for: When to process (default now)
            payload: Additional job data as JSON
            max_attempts: Retry limit (default QUEUE_MAX_ATTEMPTS)

        Returns:
            Job ID
        """
        now = utcnow()
        query = _timestamps("""
            INSERT INTO jobs (job_type, assessment_id, priority, status,
                            payload, attempts, max_attempts, scheduled_for, created_at)
            VALUES (:job_type, :assessment_id, :priority, 'pending',
                    :payload, 0, :max_attempts, :scheduled_for, :now)
            RETURNING id
        """, "scheduled_for", "now")

        result = self.db.execute(
            query,
            {
                "job_type": job_type,
                "assessment_id": assessment_id,
                "priority": priority,
                "payload": json.dumps(payload) if payload else None,
                "max_attempts": max_attempts or self.max_attempts,
                "scheduled_for": scheduled_for or now,
                "now": now,
            },
        )
        job_id = result.scalar()
        self.db.commit()
        logger.info(
            "Job enqueued",
            job_id=job_id,
            job_type=job_type,
            assessment_id=assessment_id,
        )
        return job_id

    def claim_next(self) -> Optional[dict]:
        """Claim the next due pending job.

        Returns:
            Job data dict or None if no jobs available
        """
        now = utcnow()

        # Step 1: Find the next due job
        select_query = _timestamps("""
            SELECT id FROM jobs
            WHERE status = 'pending'
              AND scheduled_for <= :now
            ORDER BY priority DESC, created_at ASC, id ASC
            LIMIT 1
        """, "now")
        row = self.db.execute(select_query, {"now": now}).fetchone()

        if not row:
            self.db.rollback()
            return None

        job_id = row.id

        # Step 2: Take it, unless another worker got there first
        update_query = _timestamps("""
            UPDATE jobs
            SET status = 'running',
                started_at = :now,
                attempts = attempts + 1
            WHERE id = :job_id AND status = 'pending'
        """, "now")
        result = self.db.execute(update_query, {"job_id": job_id, "now": now})
        if result.rowcount == 0:
            self.db.rollback()
            logger.debug("Job claimed by another worker", job_id=job_id)
            return None

        # Step 3: Fetch the updated job data
        fetch_query = text("""
            SELECT id, job_type, assessment_id, priority,
                   payload, attempts, max_attempts
            FROM jobs
            WHERE id = :job_id
        """)
        row = self.db.execute(fetch_query, {"job_id": job_id}).fetchone()
        self.db.commit()

        if not row:
            return None

        job = {
            "id": row.id,
            "job_type": row.job_type,
            "assessment_id": row.assessment_id,
            "priority": row.priority,
            "payload": json.loads(row.payload) if row.payload else None,
            "attempts": row.attempts,
            "max_attempts": row.max_attempts,
        }

        logger.info(
            "Job claimed",
            job_id=job["id"],
            job_type=job["job_type"],
            attempt=job["attempts"],
        )
        return job

    def complete(self, job_id: int) -> None:
        """Mark a job as completed."""
        query = _timestamps("""
            UPDATE jobs
            SET status = 'completed', completed_at = :now
            WHERE id = :job_id
        """, "now")
        self.db.execute(query, {"job_id": job_id, "now": utcnow()})
        self.db.commit()

        logger.info("Job completed", job_id=job_id)

    def fail(self, job_id: int, error: str) -> None:
        """Mark a job as failed, schedule retry or move to dead letter.

        Uses exponential backoff: base_delay * 2^(attempts-1)
        """
        query = text("SELECT attempts, max_attempts FROM jobs WHERE id = :job_id")
        row = self.db.execute(query, {"job_id": job_id}).fetchone()

        if not row:
            logger.error("Job not found for failure", job_id=job_id)
            return

        attempts = row.attempts or 0
        max_attempts = row.max_attempts or self.max_attempts
        now = utcnow()

        if attempts >= max_attempts:
            query = _timestamps("""
                UPDATE jobs
                SET status = 'dead',
                    last_error = :error,
                    completed_at = :now
                WHERE id = :job_id
            """, "now")
            self.db.execute(query, {"job_id": job_id, "error": error, "now": now})
            logger.warning("Job moved to dead letter", job_id=job_id, error=error)
        else:
            delay_seconds = self.retry_base_delay * (2 ** (attempts - 1))
            next_attempt = now + timedelta(seconds=delay_seconds)

            query = _timestamps("""
                UPDATE jobs
                SET status = 'pending',
                    last_error = :error,
                    scheduled_for = :next_attempt,
                    started_at = NULL
                WHERE id = :job_id
            """, "next_attempt")
            self.db.execute(
                query,
                {"job_id": job_id, "error": error, "next_attempt": next_attempt},
            )
            logger.info(
                "Job scheduled for retry",
                job_id=job_id,
                attempt=attempts,
                next_attempt=next_attempt.isoformat(),
            )

        self.db.commit()

    def get_status(self) -> dict:
        """Get queue status counts."""
        query = text("""
            SELECT status, COUNT(*) AS count
            FROM jobs
            GROUP BY status
        """)
        result = self.db.execute(query)

        status = {"pending": 0, "running": 0, "completed": 0, "dead": 0}
        for row in result:
            status[row.status] = row.count

        return status

    def clear_completed(self, older_than_hours: int = 24) -> int:
        """Delete completed jobs older than the given number of hours."""
        cutoff = utcnow() - timedelta(hours=older_than_hours)

        query = _timestamps("""
            DELETE FROM jobs
            WHERE status = 'completed' AND completed_at < :cutoff
        """, "cutoff")
        result = self.db.execute(query, {"cutoff": cutoff})
        self.db.commit()

        count = result.rowcount
        if count > 0:
            logger.info("Cleared completed jobs", count=count, older_than_hours=older_than_hours)
        return count

    def recover_stuck_jobs(self, stuck_threshold_minutes: int = 30) -> int:
        """Reset jobs stuck in 'running' status back to 'pending'.

        Jobs can get stuck if a worker crashes mid-processing.

        Returns:
            Number of jobs recovered
        """
        cutoff = utcnow() - timedelta(minutes=stuck_threshold_minutes)

        query = _timestamps("""
            UPDATE jobs
            SET status = 'pending',
                started_at = NULL,
                last_error = 'Recovered from stuck state (worker likely crashed)'
            WHERE status = 'running'
              AND started_at < :cutoff
        """, "cutoff")
        result = self.db.execute(query, {"cutoff": cutoff})
        self.db.commit()

        count = result.rowcount
        if count > 0:
            logger.warning("Recovered stuck jobs", count=count, threshold_minutes=stuck_threshold_minutes)
        return count

    def heal_stuck_assessments(self, stuck_threshold_minutes: int = 5) -> int:
        """Complete assessments left in progress at Q5 that were already scored.

        A result only exists after submission, so these are assessments whose
        status update was lost.
        """
        now = utcnow()
        cutoff = now - timedelta(minutes=stuck_threshold_minutes)

        query = _timestamps("""
            UPDATE assessments
            SET status = 'completed',
                completed_at = COALESCE(completed_at, :now),
                updated_at = :now
            WHERE status = 'in_progress'
              AND current_question = 5
              AND COALESCE(updated_at, created_at) < :cutoff
              AND EXISTS (
                  SELECT 1 FROM assessment_results r
                  WHERE r.assessment_id = assessments.id
              )
        """, "now", "cutoff")
        result = self.db.execute(query, {"now": now, "cutoff": cutoff})
        self.db.commit()

        count = result.rowcount
        if count > 0:
            logger.warning("Healed stuck assessments", count=count)
        return count

    def recover_unscored_assessments(self, stuck_threshold_minutes: int = 5) -> int:
        """Queue scoring for completed assessments with no result and no scoring job.

        Catches submissions whose scoring enqueue failed.

        Returns:
            Number of scoring jobs created
        """
        now = utcnow()
        cutoff = now - timedelta(minutes=stuck_threshold_minutes)

        query = _timestamps("""
            INSERT INTO jobs (job_type, assessment_id, priority, status, payload,
                            attempts, max_attempts, scheduled_for, created_at)
            SELECT :job_type, a.id, 5, 'pending',
                   '{"assessment_id": ' || CAST(a.id AS VARCHAR(20)) || '}',
                   0, :max_attempts, :now, :now
            FROM assessments a
            WHERE a.status = 'completed'
              AND a.completed_at < :cutoff
              AND NOT EXISTS (
                  SELECT 1 FROM assessment_results r
                  WHERE r.assessment_id = a.id
              )
              AND NOT EXISTS (
                  SELECT 1 FROM jobs j
                  WHERE j.assessment_id = a.id
                    AND j.job_type = :job_type
              )
        """, "now", "cutoff")

        result = self.db.execute(
            query,
            {
                "job_type": SCORE_ASSESSMENT,
                "max_attempts": settings.SCORING_MAX_ATTEMPTS,
                "now": now,
                "cutoff": cutoff,
            },
        )
        self.db.commit()

        count = result.rowcount
        if count > 0:
            logger.warning("Recovered unscored assessments", count=count)
        return count
