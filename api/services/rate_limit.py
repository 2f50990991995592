"""Database-backed fixed-window rate limiter.

Check-and-increment against a shared counter per key. The read and write are
not guarded by a transaction, so concurrent bursts on one key can overcount
slightly. The limit is advisory.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.models import RateLimit
from api.models.base import utcnow

logger = structlog.get_logger()


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: datetime


class RateLimiter:
    """Counts calls per key inside a fixed window."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def check(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        """Count one call for ``key`` and report whether it is allowed.

        Fails open: any storage error allows the call.
        """
        now = self.clock()
        new_reset = now + timedelta(seconds=window_seconds)

        try:
            record = self.db.query(RateLimit).filter(RateLimit.key == key).first()

            if record is None:
                self.db.add(RateLimit(key=key, count=1, reset_at=new_reset))
                self.db.commit()
                return RateLimitResult(True, limit - 1, new_reset)

            if now > record.reset_at:
                record.count = 1
                record.reset_at = new_reset
                self.db.commit()
                return RateLimitResult(True, limit - 1, new_reset)

            if record.count >= limit:
                logger.info("Rate limit exceeded", key=key, limit=limit)
                return RateLimitResult(False, 0, record.reset_at)

            record.count += 1
            self.db.commit()
            return RateLimitResult(True, limit - record.count, record.reset_at)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Rate limit check failed, allowing request", key=key, error=str(e))
            return RateLimitResult(True, limit, new_reset)
