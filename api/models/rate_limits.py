"""Rate limit counter model."""

from sqlalchemy import Column, Integer, String, DateTime

from api.config.database import Base
from api.models.base import utcnow


class RateLimit(Base):
    """Fixed-window counter keyed by caller identity (e.g. ``suggest:1.2.3.4``)."""

    __tablename__ = "rate_limits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(255), unique=True, nullable=False)
    count = Column(Integer, default=0, nullable=False)
    reset_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<RateLimit(key={self.key}, count={self.count})>"
