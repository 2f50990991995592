"""Pydantic schemas for API request/response validation.

All schemas use CamelCase for JSON field names (via alias_generator).
"""

from .base import CamelModel, PaginatedResponse, PaginationMeta, ErrorResponse
from .answers import (
    Answer,
    TextAnswer,
    RankedCategoryAnswer,
    SingleChoiceAnswer,
    parse_answer,
    serialize_answer,
)
from .assessments import (
    AssessmentStart,
    AnswerUpdate,
    AssessmentView,
    QuestionView,
    SuggestionView,
    SubmitResponse,
    AIHelpResponse,
    AssessmentListItem,
    AssessmentDetail,
    RescoreResponse,
)
from .analytics import AdaptationSummary, QuestionAdaptationStats

__all__ = [
    "CamelModel",
    "PaginatedResponse",
    "PaginationMeta",
    "ErrorResponse",
    "Answer",
    "TextAnswer",
    "RankedCategoryAnswer",
    "SingleChoiceAnswer",
    "parse_answer",
    "serialize_answer",
    "AssessmentStart",
    "AnswerUpdate",
    "AssessmentView",
    "QuestionView",
    "SuggestionView",
    "SubmitResponse",
    "AIHelpResponse",
    "AssessmentListItem",
    "AssessmentDetail",
    "RescoreResponse",
    "AdaptationSummary",
    "QuestionAdaptationStats",
]
