"""Chapter model (tenant)."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from api.config.database import Base
from api.models.base import utcnow


class Chapter(Base):
    """
    A chapter is the tenant every assessment, admin and vertical belongs to.

    The slug is what candidates use to start an assessment.
    """

    __tablename__ = "chapters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    assessments = relationship("Assessment", back_populates="chapter")

    def __repr__(self) -> str:
        return f"<Chapter(id={self.id}, slug={self.slug})>"
