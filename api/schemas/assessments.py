"""Pydantic schemas for assessment endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .answers import Answer
from .base import CamelModel


# =============================================================================
# Candidate (public) schemas
# =============================================================================


class AssessmentStart(CamelModel):
    """Schema for starting an assessment."""

    chapter_slug: str = Field(..., min_length=1, max_length=100)
    candidate_name: str = Field(..., min_length=1, max_length=255)
    candidate_email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")


class AnswerUpdate(CamelModel):
    """Draft answer for the active question."""

    answer: Answer


class TransitionRequest(CamelModel):
    """Optional latest answer sent along with Next/Previous/Submit."""

    answer: Optional[Answer] = None


class AnalyzeRequest(CamelModel):
    """Q1 problem text to analyze; the saved draft is used when omitted."""

    problem_text: Optional[str] = Field(None, max_length=5000)


class AIHelpRequest(CamelModel):
    current_text: Optional[str] = Field(None, max_length=5000)


class ChoiceOptionView(CamelModel):
    value: str
    label: str


class VerticalItem(CamelModel):
    id: int
    name: str
    description: Optional[str] = None


class QuestionView(CamelModel):
    """A question as shown to the candidate."""

    number: int
    title: str
    question_type: str
    scenario: str
    is_adapted: bool = False
    context_summary: Optional[str] = None
    placeholder: str = ""
    min_chars: int = 0
    max_chars: Optional[int] = None
    options: list[ChoiceOptionView] = []
    ranking_instructions: Optional[str] = None


class SuggestionView(CamelModel):
    """Result of the Q1 analyze step."""

    vertical_ids: list[int]
    fallback: bool = False
    verticals: list[VerticalItem] = []


class AssessmentView(CamelModel):
    """Everything the candidate screen needs for the active question."""

    token: str
    candidate_name: str
    chapter_name: str
    status: str
    current_question: int
    active_question: int
    total_questions: int = 5
    question: Optional[QuestionView] = None
    answer: Optional[Answer] = None
    suggestions: Optional[SuggestionView] = None
    verticals: list[VerticalItem] = []
    notice: Optional[str] = None


class SubmitResponse(CamelModel):
    """Schema for a successful submission."""

    status: str
    completed_at: datetime
    notice: Optional[str] = None


class AIHelpSuggestion(CamelModel):
    title: str
    content: str


class AIHelpResponse(CamelModel):
    """AI-drafted help for the active question."""

    question_number: int
    suggestion: Optional[str] = None
    suggestions: list[AIHelpSuggestion] = []
    explanation: Optional[str] = None


# =============================================================================
# Admin schemas
# =============================================================================


class AssessmentListItem(CamelModel):
    """Schema for assessment in list response."""

    id: int
    candidate_name: str
    candidate_email: str
    status: str
    current_question: int
    review_status: Optional[str] = None
    is_shortlisted: bool = False
    created_at: datetime
    completed_at: Optional[datetime] = None
    quadrant: Optional[str] = None
    recommended_role: Optional[str] = None


class ResponseDetail(CamelModel):
    """One stored answer with its adaptation metadata."""

    question_number: int
    question_text: Optional[str] = None
    answer: Optional[Answer] = None
    adapted_question_text: Optional[str] = None
    context_summary: Optional[str] = None
    updated_at: Optional[datetime] = None


class ResultDetail(CamelModel):
    """Scoring result for a completed assessment."""

    personal_ownership_score: int
    impact_readiness_score: int
    will_score: int
    skill_score: int
    quadrant: str
    recommended_role: str
    role_explanation: Optional[str] = None
    vertical_matches: list[int] = []
    leadership_style: Optional[str] = None
    created_at: Optional[datetime] = None


class AssessmentDetail(AssessmentListItem):
    """Schema for full assessment response."""

    chapter_id: int
    admin_notes: Optional[str] = None
    responses: list[ResponseDetail] = []
    result: Optional[ResultDetail] = None


class RescoreResponse(CamelModel):
    job_id: int
    message: str


class ReviewUpdate(CamelModel):
    """Reviewer-editable fields. Only the fields sent are changed."""

    review_status: Optional[str] = Field(
        None, pattern="^(new|reviewed|shortlisted|rejected)$"
    )
    is_shortlisted: Optional[bool] = None
    admin_notes: Optional[str] = Field(None, max_length=5000)
