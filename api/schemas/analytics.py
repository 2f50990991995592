"""Pydantic schemas for adaptation analytics."""

from typing import Optional

from .base import CamelModel


class QuestionAdaptationStats(CamelModel):
    """Aggregated pipeline outcome for one question."""

    question_number: int
    records: int
    adaptation_attempts: int
    adaptation_success_rate: Optional[float] = None
    fallback_rate: Optional[float] = None
    avg_adaptation_time_ms: Optional[float] = None
    ai_help_used: int = 0
    ai_help_accepted: int = 0
    completed: int = 0
    avg_time_to_complete_seconds: Optional[float] = None


class AdaptationSummary(CamelModel):
    chapter_id: int
    questions: list[QuestionAdaptationStats]
    submission_failures: int = 0
