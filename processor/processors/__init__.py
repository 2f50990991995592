"""Job processors for the outbound queue.

1. RecordAnalyticsProcessor - Merges adaptation analytics for one question
2. ScoreAssessmentProcessor - Scores a submitted assessment via Claude
"""

from .base import BaseProcessor
from .record_analytics import RecordAnalyticsProcessor
from .score_assessment import ScoreAssessmentProcessor

__all__ = [
    "BaseProcessor",
    "RecordAnalyticsProcessor",
    "ScoreAssessmentProcessor",
]
