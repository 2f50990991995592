"""Post-submission scoring trigger."""

import structlog
from sqlalchemy.orm import Session

from api.config.settings import settings
from api.services.job_queue import SCORE_ASSESSMENT, enqueue_job

logger = structlog.get_logger()


class ScoringTrigger:
    """Hands a completed assessment to the processor for scoring."""

    def __init__(self, db: Session):
        self.db = db

    def trigger(self, assessment_id: int) -> int:
        """Queue scoring. Raises on storage errors so the caller can report them."""
        job_id = enqueue_job(
            self.db,
            SCORE_ASSESSMENT,
            assessment_id=assessment_id,
            payload={"assessment_id": assessment_id},
            max_attempts=settings.SCORING_MAX_ATTEMPTS,
            priority=5,
        )
        logger.info("Scoring queued", assessment_id=assessment_id, job_id=job_id)
        return job_id
