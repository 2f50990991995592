"""Outbound job queue writes from the API side.

Jobs are rows in ``jobs``; the processor worker claims and runs them.
"""

import json
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from api.models import Job

logger = structlog.get_logger()

RECORD_ANALYTICS = "record_analytics"
SCORE_ASSESSMENT = "score_assessment"


def enqueue_job(
    db: Session,
    job_type: str,
    assessment_id: Optional[int] = None,
    payload: Optional[dict] = None,
    max_attempts: int = 3,
    priority: int = 0,
) -> int:
    """Insert a pending job and commit. Returns the job id."""
    job = Job(
        assessment_id=assessment_id,
        job_type=job_type,
        priority=priority,
        max_attempts=max_attempts,
        payload=json.dumps(payload) if payload else None,
    )
    db.add(job)
    db.commit()
    db.refresh(job)

    logger.debug("Job enqueued", job_id=job.id, job_type=job_type, assessment_id=assessment_id)
    return job.id
