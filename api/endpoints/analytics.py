"""Adaptation analytics summary for admins."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from api.config.database import get_db
from api.models import AdaptationAnalytics, Assessment
from api.schemas.analytics import AdaptationSummary, QuestionAdaptationStats
from api.services.analytics import ASSESSMENT_LEVEL
from api.services.rbac import RequestContext, require_admin

logger = structlog.get_logger()
router = APIRouter()


def _count_true(column):
    return func.sum(case((column.is_(True), 1), else_=0))


def _rate(part, whole) -> float | None:
    if not whole:
        return None
    return round(part / whole, 4)


@router.get("/adaptation", response_model=AdaptationSummary)
async def adaptation_summary(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_admin),
):
    """Per-question adaptation, fallback and AI-help rates for the chapter."""
    A = AdaptationAnalytics
    rows = (
        db.query(
            A.question_number,
            func.count(A.id),
            func.count(A.adaptation_success),
            _count_true(A.adaptation_success),
            _count_true(A.fallback_used),
            func.count(A.fallback_used),
            func.avg(A.adaptation_time_ms),
            _count_true(A.ai_help_used),
            _count_true(A.ai_help_accepted),
            _count_true(A.response_completed),
            func.avg(A.time_to_complete_seconds),
        )
        .join(Assessment, Assessment.id == A.assessment_id)
        .filter(Assessment.chapter_id == ctx.chapter_id)
        .group_by(A.question_number)
        .order_by(A.question_number)
        .all()
    )

    questions = []
    submission_failures = 0
    for (
        number,
        records,
        attempts,
        successes,
        fallbacks,
        fallback_known,
        avg_time,
        help_used,
        help_accepted,
        completed,
        avg_complete,
    ) in rows:
        if number == ASSESSMENT_LEVEL:
            submission_failures = records
            continue
        questions.append(
            QuestionAdaptationStats(
                question_number=number,
                records=records,
                adaptation_attempts=attempts,
                adaptation_success_rate=_rate(successes or 0, attempts),
                fallback_rate=_rate(fallbacks or 0, fallback_known),
                avg_adaptation_time_ms=float(avg_time) if avg_time is not None else None,
                ai_help_used=help_used or 0,
                ai_help_accepted=help_accepted or 0,
                completed=completed or 0,
                avg_time_to_complete_seconds=float(avg_complete) if avg_complete is not None else None,
            )
        )

    return AdaptationSummary(
        chapter_id=ctx.chapter_id,
        questions=questions,
        submission_failures=submission_failures,
    )
