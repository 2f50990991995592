"""Persistence for assessments and their per-question responses."""

import secrets
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.models import Assessment, AssessmentResponse, Chapter, Vertical
from api.models.base import dump_json, load_json, utcnow
from api.schemas.answers import parse_answer, serialize_answer
from api.services.question_adapter import AdaptedQuestion

logger = structlog.get_logger()


class AssessmentStore:
    """Reads and upserts assessment state. One response row per question."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Assessments
    # -------------------------------------------------------------------------

    def create_assessment(self, chapter: Chapter, candidate_name: str, candidate_email: str) -> Assessment:
        assessment = Assessment(
            chapter_id=chapter.id,
            token=secrets.token_urlsafe(32),
            candidate_name=candidate_name,
            candidate_email=candidate_email,
            status="in_progress",
            current_question=1,
            active_question=1,
            question_started_at=utcnow(),
        )
        self.db.add(assessment)
        self.db.commit()
        self.db.refresh(assessment)
        logger.info("Assessment created", assessment_id=assessment.id, chapter_id=chapter.id)
        return assessment

    def get_by_token(self, token: str) -> Optional[Assessment]:
        return self.db.query(Assessment).filter(Assessment.token == token).first()

    def get_chapter_by_slug(self, slug: str) -> Optional[Chapter]:
        return (
            self.db.query(Chapter)
            .filter(Chapter.slug == slug, Chapter.is_active == True)  # noqa: E712
            .first()
        )

    def set_position(self, assessment: Assessment, active_question: int, started_at: datetime) -> None:
        """Move the on-screen question. The furthest-reached index only grows."""
        assessment.active_question = active_question
        assessment.current_question = max(assessment.current_question, active_question)
        assessment.question_started_at = started_at
        self.db.commit()

    def mark_completed(self, assessment: Assessment, completed_at: datetime) -> None:
        """Mark completed. Storage errors propagate to the caller."""
        assessment.status = "completed"
        assessment.completed_at = completed_at
        self.db.commit()

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    def active_verticals(self, chapter_id: int) -> list[Vertical]:
        """Shared and chapter-specific active verticals in catalog order."""
        return (
            self.db.query(Vertical)
            .filter(
                Vertical.is_active == True,  # noqa: E712
                or_(Vertical.chapter_id.is_(None), Vertical.chapter_id == chapter_id),
            )
            .order_by(Vertical.display_order, Vertical.id)
            .all()
        )

    # -------------------------------------------------------------------------
    # Responses
    # -------------------------------------------------------------------------

    def get_response(self, assessment_id: int, question_number: int) -> Optional[AssessmentResponse]:
        return (
            self.db.query(AssessmentResponse)
            .filter(
                AssessmentResponse.assessment_id == assessment_id,
                AssessmentResponse.question_number == question_number,
            )
            .first()
        )

    def load_answer(self, assessment_id: int, question_number: int):
        row = self.get_response(assessment_id, question_number)
        return parse_answer(row.response_data) if row else None

    def load_answers(self, assessment_id: int) -> dict:
        rows = (
            self.db.query(AssessmentResponse)
            .filter(AssessmentResponse.assessment_id == assessment_id)
            .all()
        )
        return {
            row.question_number: parse_answer(row.response_data)
            for row in rows
            if row.response_data
        }

    def upsert_response(
        self,
        assessment_id: int,
        question_number: int,
        answer,
        question_text: Optional[str] = None,
    ) -> AssessmentResponse:
        """Insert or overwrite the answer for one question (last write wins)."""
        row = self._get_or_create(assessment_id, question_number)
        row.response_data = serialize_answer(answer)
        if question_text is not None:
            row.question_text = question_text
        self.db.commit()
        return row

    def get_adaptation(self, assessment_id: int, question_number: int) -> Optional[AdaptedQuestion]:
        row = self.get_response(assessment_id, question_number)
        if not row or not row.adapted_question_text:
            return None
        context = load_json(row.adaptation_context) or {}
        return AdaptedQuestion(
            scenario=row.adapted_question_text,
            context_summary=context.get("contextSummary") or "",
            domains=tuple(context.get("domains") or ()),
        )

    def save_adaptation(self, assessment_id: int, question_number: int, adapted: AdaptedQuestion) -> None:
        row = self._get_or_create(assessment_id, question_number)
        row.adapted_question_text = adapted.scenario
        row.adaptation_context = dump_json(
            {
                "contextSummary": adapted.context_summary,
                "domains": list(adapted.domains),
                "wasAdapted": True,
                "adaptedAt": utcnow().isoformat(),
            }
        )
        self.db.commit()

    def _get_or_create(self, assessment_id: int, question_number: int) -> AssessmentResponse:
        row = self.get_response(assessment_id, question_number)
        if row:
            return row

        row = AssessmentResponse(assessment_id=assessment_id, question_number=question_number)
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError:
            # Another writer created the row first
            self.db.rollback()
            row = self.get_response(assessment_id, question_number)
        return row


def response_context_summary(row: AssessmentResponse) -> Optional[str]:
    """Context summary stored alongside an adapted question, if any."""
    return (load_json(row.adaptation_context) or {}).get("contextSummary")
