"""Assessment model for one candidate attempt."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import relationship

from api.models.base import BaseModel


class Assessment(BaseModel):
    """
    One candidate attempt at the five-question assessment.

    Status Values:
    - in_progress: Candidate is answering questions
    - completed: Submitted; position fields are frozen

    current_question is the furthest question reached and never decreases.
    active_question is the question on screen and moves back on Previous.
    """

    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id"), nullable=False)

    # Candidate access (the token is the candidate's capability)
    token = Column(String(64), unique=True, nullable=False)
    candidate_name = Column(String(255), nullable=False)
    candidate_email = Column(String(255), nullable=False)

    # Progress
    status = Column(String(50), default="in_progress", nullable=False)
    current_question = Column(Integer, default=1, nullable=False)
    active_question = Column(Integer, default=1, nullable=False)
    question_started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Review metadata (owned by admins)
    review_status = Column(String(50), default="new")
    is_shortlisted = Column(Boolean, default=False)
    admin_notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_assessments_chapter", "chapter_id", "status"),
    )

    # Relationships
    chapter = relationship("Chapter", back_populates="assessments")
    responses = relationship(
        "AssessmentResponse",
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="AssessmentResponse.question_number",
    )
    result = relationship("AssessmentResult", back_populates="assessment", uselist=False)

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    def __repr__(self) -> str:
        return f"<Assessment(id={self.id}, status={self.status}, question={self.current_question})>"
