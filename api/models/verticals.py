"""Vertical (category) catalog model."""

from sqlalchemy import Column, Integer, String, Boolean, Text, ForeignKey, Index

from api.models.base import BaseModel


class Vertical(BaseModel):
    """
    A thematic area a candidate's problem can map to.

    Rows with a NULL chapter_id are shared by every chapter. The active
    catalog is ordered by display_order, then id.
    """

    __tablename__ = "verticals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    display_order = Column(Integer, default=0)

    __table_args__ = (
        Index("idx_verticals_chapter", "chapter_id", "display_order"),
    )

    def __repr__(self) -> str:
        return f"<Vertical(id={self.id}, name={self.name})>"
