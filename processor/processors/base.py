"""Base processor class for all job processors."""

from abc import ABC, abstractmethod
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from processor.queue_manager import QueueManager


class BaseProcessor(ABC):
    """Abstract base class for job processors."""

    # Override in subclasses
    job_type: str = "base"

    def __init__(self, db: Session, queue: QueueManager):
        """Initialize processor with database session and queue manager.

        Args:
            db: SQLAlchemy database session
            queue: Queue manager for enqueueing follow-up jobs
        """
        self.db = db
        self.queue = queue
        self.logger = structlog.get_logger().bind(processor=self.job_type)

    @abstractmethod
    async def process(
        self,
        assessment_id: Optional[int] = None,
        payload: Optional[dict] = None,
    ) -> None:
        """Process a job.

        Args:
            assessment_id: ID of the assessment the job concerns
            payload: Additional job data

        Raises:
            Exception: If processing fails (will be caught by worker for retry)
        """
        pass
