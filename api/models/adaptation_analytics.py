"""Adaptation analytics model (best-effort side channel)."""

from sqlalchemy import Column, Integer, String, Boolean, Text, ForeignKey, UniqueConstraint

from api.models.base import BaseModel


class AdaptationAnalytics(BaseModel):
    """
    Pipeline outcome per (assessment, question).

    Written at adaptation time and again at completion time; each write
    merges only the fields it carries. question_number 0 holds failures
    that concern the whole assessment (e.g. submission).
    """

    __tablename__ = "adaptation_analytics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False)
    question_number = Column(Integer, nullable=False)

    # Adaptation
    was_adapted = Column(Boolean, nullable=True)
    adaptation_success = Column(Boolean, nullable=True)
    fallback_used = Column(Boolean, nullable=True)
    fallback_reason = Column(String(100), nullable=True)
    adaptation_time_ms = Column(Integer, nullable=True)

    # AI help
    ai_help_used = Column(Boolean, nullable=True)
    ai_help_accepted = Column(Boolean, nullable=True)

    # Completion
    response_completed = Column(Boolean, nullable=True)
    response_length = Column(Integer, nullable=True)
    time_to_complete_seconds = Column(Integer, nullable=True)

    # Free-form context (JSON)
    adaptation_context = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("assessment_id", "question_number", name="uq_analytics_question"),
    )

    def __repr__(self) -> str:
        return f"<AdaptationAnalytics(assessment_id={self.assessment_id}, question={self.question_number})>"
