"""Admin assessment review endpoints (chapter-scoped)."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, selectinload

from api.config.database import get_db
from api.middleware.error_handler import ConflictError, NotFoundError
from api.models import Assessment
from api.models.base import load_json
from api.schemas.answers import parse_answer
from api.schemas.assessments import (
    AssessmentDetail,
    AssessmentListItem,
    RescoreResponse,
    ReviewUpdate,
    ResponseDetail,
    ResultDetail,
)
from api.schemas.base import PaginatedResponse, PaginationMeta
from api.services.rbac import RequestContext, require_admin, require_reviewer
from api.services.response_store import response_context_summary
from api.services.scoring import ScoringTrigger

logger = structlog.get_logger()
router = APIRouter()


def get_chapter_assessment(db: Session, assessment_id: int, ctx: RequestContext) -> Assessment:
    """Load an assessment in the caller's chapter or raise 404."""
    assessment = (
        db.query(Assessment)
        .options(selectinload(Assessment.responses), selectinload(Assessment.result))
        .filter(Assessment.id == assessment_id, Assessment.chapter_id == ctx.chapter_id)
        .first()
    )
    if not assessment:
        raise NotFoundError("Assessment", assessment_id)
    return assessment


def _list_item_fields(a: Assessment) -> dict:
    return dict(
        id=a.id,
        candidate_name=a.candidate_name,
        candidate_email=a.candidate_email,
        status=a.status,
        current_question=a.current_question,
        review_status=a.review_status,
        is_shortlisted=bool(a.is_shortlisted),
        created_at=a.created_at,
        completed_at=a.completed_at,
        quadrant=a.result.quadrant if a.result else None,
        recommended_role=a.result.recommended_role if a.result else None,
    )


@router.get("", response_model=PaginatedResponse[AssessmentListItem])
async def list_assessments(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    shortlisted: Optional[bool] = Query(None),
    ctx: RequestContext = Depends(require_reviewer),
):
    """List the chapter's assessments with pagination."""
    query = db.query(Assessment).filter(Assessment.chapter_id == ctx.chapter_id)

    if status:
        query = query.filter(Assessment.status == status)
    if shortlisted is not None:
        query = query.filter(Assessment.is_shortlisted == shortlisted)

    total = query.count()

    assessments = (
        query.options(selectinload(Assessment.result))
        .order_by(Assessment.created_at.desc(), Assessment.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    return PaginatedResponse(
        data=[AssessmentListItem(**_list_item_fields(a)) for a in assessments],
        meta=PaginationMeta(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=(total + per_page - 1) // per_page,
        ),
    )


def build_detail(assessment: Assessment) -> AssessmentDetail:
    responses = [
        ResponseDetail(
            question_number=r.question_number,
            question_text=r.question_text,
            answer=parse_answer(r.response_data),
            adapted_question_text=r.adapted_question_text,
            context_summary=response_context_summary(r),
            updated_at=r.updated_at or r.created_at,
        )
        for r in assessment.responses
    ]

    result = None
    if assessment.result:
        r = assessment.result
        result = ResultDetail(
            personal_ownership_score=r.personal_ownership_score,
            impact_readiness_score=r.impact_readiness_score,
            will_score=r.will_score,
            skill_score=r.skill_score,
            quadrant=r.quadrant,
            recommended_role=r.recommended_role,
            role_explanation=r.role_explanation,
            vertical_matches=load_json(r.vertical_matches) or [],
            leadership_style=r.leadership_style,
            created_at=r.created_at,
        )

    return AssessmentDetail(
        **_list_item_fields(assessment),
        chapter_id=assessment.chapter_id,
        admin_notes=assessment.admin_notes,
        responses=responses,
        result=result,
    )


@router.get("/{assessment_id}", response_model=AssessmentDetail)
async def get_assessment(
    assessment_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_reviewer),
):
    """Get an assessment with its responses and scoring result."""
    return build_detail(get_chapter_assessment(db, assessment_id, ctx))


@router.patch("/{assessment_id}", response_model=AssessmentDetail)
async def update_review(
    assessment_id: int,
    data: ReviewUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_reviewer),
):
    """Update review status, shortlist flag or notes."""
    assessment = get_chapter_assessment(db, assessment_id, ctx)

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(assessment, field, value)

    db.commit()
    db.refresh(assessment)

    logger.info(
        "Assessment review updated",
        assessment_id=assessment.id,
        fields=sorted(update_data),
        user=ctx.user_id,
    )
    return build_detail(assessment)


@router.post("/{assessment_id}/rescore", response_model=RescoreResponse, status_code=202)
async def rescore_assessment(
    assessment_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_admin),
):
    """Queue scoring again for a completed assessment."""
    assessment = get_chapter_assessment(db, assessment_id, ctx)
    if not assessment.is_completed:
        raise ConflictError("Only completed assessments can be scored")

    job_id = ScoringTrigger(db).trigger(assessment.id)
    logger.info("Rescore requested", assessment_id=assessment.id, job_id=job_id, user=ctx.user_id)
    return RescoreResponse(job_id=job_id, message="Scoring queued")
