"""Scoring result model."""

from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from api.config.database import Base
from api.models.base import utcnow


class AssessmentResult(Base):
    """
    Scoring output for a completed assessment (one row per assessment).

    Quadrants:
    - Q1: high will, high skill
    - Q2: high will, developing skill
    - Q3: developing will, high skill
    - Q4: developing will and skill
    """

    __tablename__ = "assessment_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    assessment_id = Column(
        Integer, ForeignKey("assessments.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    # Dimension scores (0-100)
    personal_ownership_score = Column(Integer, nullable=False)
    impact_readiness_score = Column(Integer, nullable=False)
    will_score = Column(Integer, nullable=False)
    skill_score = Column(Integer, nullable=False)

    # Derived placement
    quadrant = Column(String(10), nullable=False)
    recommended_role = Column(String(100), nullable=False)
    role_explanation = Column(Text, nullable=True)
    vertical_matches = Column(Text, nullable=True)  # JSON list of vertical ids
    leadership_style = Column(String(50), nullable=True)

    # Per-dimension reasoning (JSON)
    scoring_breakdown = Column(Text, nullable=True)
    model_version = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=utcnow)

    # Relationships
    assessment = relationship("Assessment", back_populates="result")

    def __repr__(self) -> str:
        return f"<AssessmentResult(assessment_id={self.assessment_id}, quadrant={self.quadrant})>"
