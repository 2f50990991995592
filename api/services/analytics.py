"""Best-effort adaptation analytics.

Every method enqueues a ``record_analytics`` job on its own session and
swallows any failure. Nothing here may block or fail the candidate flow.
"""

from typing import Any, Callable, Optional

import structlog
from sqlalchemy.orm import Session

from api.config.database import SessionLocal
from api.config.settings import settings
from api.services.job_queue import RECORD_ANALYTICS, enqueue_job
from api.services.question_adapter import AdaptationOutcome

logger = structlog.get_logger()

# question_number used for records about the whole assessment
ASSESSMENT_LEVEL = 0


class AnalyticsRecorder:
    """Queues analytics upserts keyed by (assessment, question)."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def record_adaptation(
        self,
        assessment_id: int,
        question_number: int,
        outcome: AdaptationOutcome,
    ) -> None:
        succeeded = outcome.adapted is not None
        if succeeded:
            context = {
                "contextSummary": outcome.adapted.context_summary,
                "domains": list(outcome.adapted.domains),
            }
        else:
            context = dict(outcome.context)

        self._record(
            assessment_id,
            question_number,
            was_adapted=succeeded,
            adaptation_success=succeeded if outcome.was_attempted else None,
            fallback_used=outcome.fallback_used,
            fallback_reason=outcome.reason,
            adaptation_time_ms=outcome.duration_ms if outcome.was_attempted else None,
            adaptation_context=context,
        )

    def record_completion(
        self,
        assessment_id: int,
        question_number: int,
        response_length: int,
        time_to_complete_seconds: Optional[int],
    ) -> None:
        self._record(
            assessment_id,
            question_number,
            response_completed=True,
            response_length=response_length,
            time_to_complete_seconds=time_to_complete_seconds,
        )

    def record_ai_help(self, assessment_id: int, question_number: int, accepted: bool) -> None:
        self._record(
            assessment_id,
            question_number,
            ai_help_used=True,
            ai_help_accepted=accepted,
        )

    def record_failure(self, assessment_id: int, stage: str, error: str) -> None:
        """Failure concerning the whole assessment (e.g. submission)."""
        self._record(
            assessment_id,
            ASSESSMENT_LEVEL,
            response_completed=False,
            adaptation_context={"error": error, "stage": stage},
        )

    def _record(self, assessment_id: int, question_number: int, **fields: Any) -> None:
        payload = {
            "assessment_id": assessment_id,
            "question_number": question_number,
            "fields": fields,
        }
        try:
            db = self.session_factory()
        except Exception as e:
            logger.error("Analytics session unavailable", assessment_id=assessment_id, error=str(e))
            return

        try:
            enqueue_job(
                db,
                RECORD_ANALYTICS,
                assessment_id=assessment_id,
                payload=payload,
                max_attempts=settings.ANALYTICS_MAX_ATTEMPTS,
            )
        except Exception as e:
            db.rollback()
            logger.error(
                "Failed to queue analytics",
                assessment_id=assessment_id,
                question_number=question_number,
                error=str(e),
            )
        finally:
            db.close()
