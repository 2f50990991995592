"""Public assessment endpoints (no login; the assessment token is the capability)."""

from functools import lru_cache

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from api.config.database import SessionLocal, get_db
from api.config.settings import settings
from api.integrations.claude import ClaudeClient
from api.middleware.error_handler import GoneError, NotFoundError, RateLimitedError
from api.models import Assessment
from api.schemas.assessments import (
    AIHelpRequest,
    AIHelpResponse,
    AIHelpSuggestion,
    AnalyzeRequest,
    AnswerUpdate,
    AssessmentStart,
    AssessmentView,
    SubmitResponse,
    SuggestionView,
    TransitionRequest,
)
from api.services.ai_help import AIHelpService
from api.services.analytics import AnalyticsRecorder
from api.services.assessment_state import AssessmentStateMachine
from api.services.question_adapter import QuestionAdapter
from api.services.rate_limit import RateLimiter
from api.services.rbac import RequestContext
from api.services.relevance_guard import RelevanceGuard
from api.services.response_store import AssessmentStore
from api.services.scoring import ScoringTrigger
from api.services.vertical_suggestion import VerticalSuggester

logger = structlog.get_logger()
router = APIRouter()


@lru_cache
def get_claude_client() -> ClaudeClient:
    """Shared model client (overridden in tests)."""
    return ClaudeClient()


def get_analytics_recorder() -> AnalyticsRecorder:
    return AnalyticsRecorder(SessionLocal)


def client_ip(request: Request) -> str:
    """Caller IP for rate limiting, honouring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def get_assessment_by_token(token: str, db: Session) -> Assessment:
    """Get assessment by token or raise 404."""
    assessment = AssessmentStore(db).get_by_token(token)
    if not assessment:
        raise NotFoundError("Assessment", token)
    return assessment


def build_state_machine(
    assessment: Assessment,
    db: Session,
    claude: ClaudeClient,
    analytics: AnalyticsRecorder,
) -> AssessmentStateMachine:
    """Wire the pipeline for one assessment."""
    guard = RelevanceGuard.from_settings()
    return AssessmentStateMachine(
        assessment=assessment,
        context=RequestContext(chapter_id=assessment.chapter_id, role="user"),
        store=AssessmentStore(db),
        adapter=QuestionAdapter(claude),
        suggester=VerticalSuggester(claude),
        ai_help=AIHelpService(claude, guard),
        analytics=analytics,
        scoring=ScoringTrigger(db),
        rate_limiter=RateLimiter(db),
    )


def get_state_machine(
    token: str,
    db: Session = Depends(get_db),
    claude: ClaudeClient = Depends(get_claude_client),
    analytics: AnalyticsRecorder = Depends(get_analytics_recorder),
) -> AssessmentStateMachine:
    assessment = get_assessment_by_token(token, db)
    return build_state_machine(assessment, db, claude, analytics)


def enforce_rate_limit(db: Session, key: str, limit: int, window_seconds: int) -> None:
    result = RateLimiter(db).check(key, limit, window_seconds)
    if not result.allowed:
        logger.warning("Rate limit exceeded", key=key)
        raise RateLimitedError(result.reset_at)


@router.post("", response_model=AssessmentView, status_code=201)
async def start_assessment(
    data: AssessmentStart,
    db: Session = Depends(get_db),
    claude: ClaudeClient = Depends(get_claude_client),
    analytics: AnalyticsRecorder = Depends(get_analytics_recorder),
):
    """Start a new assessment for a chapter."""
    store = AssessmentStore(db)
    chapter = store.get_chapter_by_slug(data.chapter_slug)
    if not chapter:
        raise NotFoundError("Chapter", data.chapter_slug)

    assessment = store.create_assessment(chapter, data.candidate_name, data.candidate_email)
    return build_state_machine(assessment, db, claude, analytics).view()


@router.get("/{token}", response_model=AssessmentView)
async def get_assessment(machine: AssessmentStateMachine = Depends(get_state_machine)):
    """Current question, saved answer and Q1 suggestions."""
    if machine.assessment.is_completed:
        raise GoneError("This assessment has already been submitted")
    return machine.view()


@router.put("/{token}/responses/{question_number}", response_model=AssessmentView)
async def save_response(
    question_number: int,
    data: AnswerUpdate,
    machine: AssessmentStateMachine = Depends(get_state_machine),
):
    """Save a draft answer for the active question."""
    return machine.save_draft(question_number, data.answer)


@router.post("/{token}/analyze", response_model=SuggestionView)
async def analyze_q1(
    request: Request,
    data: AnalyzeRequest,
    db: Session = Depends(get_db),
    machine: AssessmentStateMachine = Depends(get_state_machine),
):
    """Suggest verticals for the Q1 problem description."""
    enforce_rate_limit(
        db,
        f"suggest:{client_ip(request)}",
        settings.SUGGEST_RATE_LIMIT,
        settings.SUGGEST_RATE_WINDOW,
    )
    return await machine.analyze_q1(data.problem_text)


@router.post("/{token}/next", response_model=AssessmentView)
async def next_question(
    data: TransitionRequest,
    machine: AssessmentStateMachine = Depends(get_state_machine),
):
    """Validate, save and move to the (possibly adapted) next question."""
    return await machine.next(data.answer)


@router.post("/{token}/previous", response_model=AssessmentView)
async def previous_question(
    data: TransitionRequest,
    machine: AssessmentStateMachine = Depends(get_state_machine),
):
    """Save without validation and go back one question."""
    return machine.previous(data.answer)


@router.post("/{token}/submit", response_model=SubmitResponse)
async def submit_assessment(
    data: TransitionRequest,
    machine: AssessmentStateMachine = Depends(get_state_machine),
):
    """Submit the final answer and complete the assessment."""
    result = machine.submit(data.answer)
    return SubmitResponse(
        status=result.status,
        completed_at=result.completed_at,
        notice=result.notice,
    )


@router.post("/{token}/ai-help", response_model=AIHelpResponse)
async def ai_help(
    request: Request,
    data: AIHelpRequest,
    db: Session = Depends(get_db),
    machine: AssessmentStateMachine = Depends(get_state_machine),
):
    """Draft example answers for the active question."""
    enforce_rate_limit(
        db,
        f"ai_help:{client_ip(request)}",
        settings.AI_HELP_RATE_LIMIT,
        settings.AI_HELP_RATE_WINDOW,
    )
    result = await machine.request_ai_help(data.current_text)
    return AIHelpResponse(
        question_number=result.question_number,
        suggestion=result.prefill,
        suggestions=[AIHelpSuggestion(title=s.title, content=s.content) for s in result.suggestions],
        explanation=result.explanation,
    )
