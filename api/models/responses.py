"""Assessment response model."""

from sqlalchemy import Column, Integer, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from api.models.base import BaseModel


class AssessmentResponse(BaseModel):
    """
    One answer per (assessment, question), upserted as the candidate moves.

    response_data holds the JSON of the tagged-union answer. The adapted
    scenario and its context are denormalized here once adaptation succeeds.
    """

    __tablename__ = "assessment_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False)
    question_number = Column(Integer, nullable=False)
    question_text = Column(Text, nullable=True)

    # Answer payload (JSON, tagged by kind)
    response_data = Column(Text, nullable=True)

    # Adaptation (JSON context: contextSummary, domains, wasAdapted, adaptedAt)
    adapted_question_text = Column(Text, nullable=True)
    adaptation_context = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("assessment_id", "question_number", name="uq_response_question"),
    )

    # Relationships
    assessment = relationship("Assessment", back_populates="responses")

    def __repr__(self) -> str:
        return f"<AssessmentResponse(assessment_id={self.assessment_id}, question={self.question_number})>"
