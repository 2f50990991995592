"""Base model with common fields and utilities."""

import json
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declared_attr

from api.config.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def dump_json(value: Any) -> Optional[str]:
    """Serialize a value for a JSON text column."""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def load_json(value: Optional[str]) -> Any:
    """Deserialize a JSON text column, tolerating NULL."""
    if not value:
        return None
    return json.loads(value)


class TimestampMixin:
    """Mixin that adds created_at and updated_at columns."""

    @declared_attr
    def created_at(cls):
        return Column(
            DateTime,
            default=utcnow,
            nullable=False,
        )

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime,
            onupdate=utcnow,
            nullable=True,
        )


class BaseModel(Base, TimestampMixin):
    """
    Abstract base class for all models.

    Provides:
    - created_at: Timestamp when record was created
    - updated_at: Timestamp when record was last updated
    """

    __abstract__ = True

    def __repr__(self) -> str:
        """String representation of model."""
        pk = getattr(self, "id", None)
        return f"<{self.__class__.__name__}(id={pk})>"
