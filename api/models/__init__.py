"""SQLAlchemy ORM models for the Leadership Assessment service.

All models are imported here to ensure they're registered with Base.metadata
before any database operations.
"""

# Import base first
from api.config.database import Base

# Tenant and catalog
from .chapters import Chapter
from .verticals import Vertical

# Assessment pipeline
from .assessments import Assessment
from .responses import AssessmentResponse
from .adaptation_analytics import AdaptationAnalytics
from .assessment_results import AssessmentResult

# Infrastructure
from .rate_limits import RateLimit
from .jobs import Job

__all__ = [
    "Base",
    "Chapter",
    "Vertical",
    "Assessment",
    "AssessmentResponse",
    "AdaptationAnalytics",
    "AssessmentResult",
    "RateLimit",
    "Job",
]
