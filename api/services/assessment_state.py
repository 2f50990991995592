"""Assessment state machine: Question(1) .. Question(5) -> Completed.

Each transition validates the active answer, persists it, and (moving
forward) waits for the next question's adaptation before the position
changes. Adaptation results are cached on the response row, so revisiting
a question never recomputes it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError

from api.config.questions import (
    FIRST_QUESTION,
    LAST_QUESTION,
    REQUIRED_PRIORITIES,
    QuestionDefinition,
    get_question,
)
from api.config.settings import settings
from api.models import Assessment, Vertical
from api.models.base import utcnow
from api.schemas.answers import (
    ANSWER_TYPES,
    RankedCategoryAnswer,
    SingleChoiceAnswer,
    TextAnswer,
    answer_text,
    empty_answer,
)
from api.schemas.assessments import (
    AssessmentView,
    ChoiceOptionView,
    QuestionView,
    SuggestionView,
    VerticalItem,
)
from api.services.ai_help import AIHelpResult, AIHelpService
from api.services.analytics import AnalyticsRecorder
from api.services.exceptions import (
    AssessmentAccessError,
    AssessmentCompletedError,
    AssessmentValidationError,
    InvalidTransitionError,
    RelevanceRejectedError,
    SubmissionFailedError,
)
from api.services.question_adapter import (
    RATE_LIMITED,
    AdaptationOutcome,
    AdaptedQuestion,
    PriorAnswers,
    QuestionAdapter,
    missing_preconditions,
)
from api.services.rate_limit import RateLimiter
from api.services.rbac import RequestContext
from api.services.response_store import AssessmentStore
from api.services.scoring import ScoringTrigger
from api.services.vertical_suggestion import VerticalSuggester

logger = structlog.get_logger()

# Validation messages (shown to candidates verbatim)
PART_A_TOO_SHORT = "Part A requires at least 200 characters"
NOT_ANALYZED = "Please click 'Analyze & Suggest Verticals' to proceed"
RANK_THREE = "Please rank your top 3 vertical priorities"
RANK_DISTINCT = "Please choose 3 different verticals"
TEXT_TOO_SHORT = "Please write at least {min} characters"
SELECT_OPTION = "Please select an option"
WRONG_ANSWER_TYPE = "Answer does not match question type"

SCORING_NOTICE = (
    "Your assessment was submitted, but analysis could not be started. "
    "Our team will review it shortly."
)


def validate_answer(
    question: QuestionDefinition,
    answer,
    catalog_ids: Optional[Sequence[int]] = None,
) -> Optional[str]:
    """Return the first failing rule's message, or None when the answer passes."""
    if answer is None:
        answer = empty_answer(question.question_type)

    if not isinstance(answer, ANSWER_TYPES[question.question_type]):
        return WRONG_ANSWER_TYPE

    if isinstance(answer, RankedCategoryAnswer):
        if len(answer.problem_text) < question.min_chars:
            return PART_A_TOO_SHORT
        if not answer.has_analyzed:
            return NOT_ANALYZED
        if len(answer.priorities) < REQUIRED_PRIORITIES:
            return RANK_THREE
        if len(set(answer.priorities)) != len(answer.priorities):
            return RANK_DISTINCT
        if catalog_ids is not None and not set(answer.priorities) <= set(catalog_ids):
            return RANK_THREE
        return None

    if isinstance(answer, TextAnswer):
        if len(answer.text) < question.min_chars:
            return TEXT_TOO_SHORT.format(min=question.min_chars)
        return None

    if isinstance(answer, SingleChoiceAnswer):
        if answer.choice not in question.option_values:
            return SELECT_OPTION
        return None

    raise TypeError(f"Unknown answer type: {type(answer).__name__}")


def build_prior_answers(answers: dict, catalog: Sequence[Vertical]) -> PriorAnswers:
    """Collect what adaptation and AI help may use from saved answers."""
    names = {vertical.id: vertical.name for vertical in catalog}

    problem_text = ""
    vertical_names: tuple[str, ...] = ()
    q1 = answers.get(1)
    if q1 is not None:
        if not isinstance(q1, RankedCategoryAnswer):
            raise TypeError(f"Unexpected Q1 answer type: {type(q1).__name__}")
        problem_text = q1.problem_text
        vertical_names = tuple(names[vid] for vid in q1.priorities if vid in names)

    return PriorAnswers(
        problem_text=problem_text,
        vertical_names=vertical_names,
        initiative_text=answer_text(answers.get(2)),
    )


@dataclass(frozen=True)
class SubmitResult:
    status: str
    completed_at: datetime
    notice: Optional[str] = None


class AssessmentStateMachine:
    """Drives one assessment through its questions."""

    def __init__(
        self,
        assessment: Assessment,
        context: RequestContext,
        store: AssessmentStore,
        adapter: QuestionAdapter,
        suggester: VerticalSuggester,
        ai_help: AIHelpService,
        analytics: AnalyticsRecorder,
        scoring: ScoringTrigger,
        rate_limiter: RateLimiter,
        clock: Callable[[], datetime] = utcnow,
    ):
        if assessment.chapter_id != context.chapter_id:
            raise AssessmentAccessError("Assessment belongs to a different chapter")

        self.assessment = assessment
        self.context = context
        self.store = store
        self.adapter = adapter
        self.suggester = suggester
        self.ai_help = ai_help
        self.analytics = analytics
        self.scoring = scoring
        self.rate_limiter = rate_limiter
        self.clock = clock
        self.logger = logger.bind(assessment_id=assessment.id)

    @property
    def chapter_name(self) -> str:
        return self.assessment.chapter.name

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def view(self, notice: Optional[str] = None) -> AssessmentView:
        """Current screen: active question, saved answer and Q1 suggestions."""
        assessment = self.assessment
        base = dict(
            token=assessment.token,
            candidate_name=assessment.candidate_name,
            chapter_name=self.chapter_name,
            status=assessment.status,
            current_question=assessment.current_question,
            active_question=assessment.active_question,
            total_questions=LAST_QUESTION,
            notice=notice,
        )
        if assessment.is_completed:
            return AssessmentView(**base)

        number = assessment.active_question
        question = get_question(number)
        adaptation = self.store.get_adaptation(assessment.id, number) if number > FIRST_QUESTION else None
        answer = self.store.load_answer(assessment.id, number)

        verticals: list[VerticalItem] = []
        suggestions = None
        if number == FIRST_QUESTION:
            catalog = self.store.active_verticals(assessment.chapter_id)
            verticals = [VerticalItem.model_validate(vertical) for vertical in catalog]
            if isinstance(answer, RankedCategoryAnswer) and answer.has_analyzed:
                suggestions = self._suggestion_view(answer, catalog)

        return AssessmentView(
            **base,
            question=self._question_view(question, adaptation),
            answer=answer,
            suggestions=suggestions,
            verticals=verticals,
        )

    def shown_scenario(self, number: int) -> str:
        """Scenario text the candidate sees for ``number``."""
        adaptation = self.store.get_adaptation(self.assessment.id, number) if number > FIRST_QUESTION else None
        if adaptation:
            return adaptation.scenario
        return get_question(number).render(self.chapter_name)

    # -------------------------------------------------------------------------
    # Candidate actions
    # -------------------------------------------------------------------------

    def save_draft(self, question_number: int, answer) -> AssessmentView:
        """Upsert the active question's answer without validation."""
        self._require_in_progress()
        if question_number != self.assessment.active_question:
            raise InvalidTransitionError("You can only edit the question you are on")

        question = get_question(question_number)
        answer = self._accept_answer(question, answer)
        self.store.upsert_response(self.assessment.id, question_number, answer)
        return self.view()

    async def analyze_q1(self, problem_text: Optional[str] = None) -> SuggestionView:
        """Run the one-time vertical suggestion step for Q1.

        Suggestions are recomputed only when the problem text changed since
        the last analysis.
        """
        self._require_in_progress()
        if self.assessment.active_question != FIRST_QUESTION:
            raise InvalidTransitionError("Verticals can only be analyzed on question 1")

        question = get_question(FIRST_QUESTION)
        stored = self.store.load_answer(self.assessment.id, FIRST_QUESTION)
        if not isinstance(stored, RankedCategoryAnswer):
            stored = RankedCategoryAnswer()

        text = stored.problem_text if problem_text is None else problem_text
        if len(text) < question.min_chars:
            raise AssessmentValidationError(PART_A_TOO_SHORT, FIRST_QUESTION, field="problemText")

        catalog = self.store.active_verticals(self.assessment.chapter_id)
        if stored.has_analyzed and stored.analyzed_text == text:
            self.logger.debug("Reusing saved vertical suggestions")
            return self._suggestion_view(stored, catalog)

        result = await self.suggester.suggest(text, catalog, chapter_name=self.chapter_name)
        updated = stored.model_copy(
            update={
                "problem_text": text,
                "has_analyzed": True,
                "analyzed_text": text,
                "suggested_vertical_ids": result.vertical_ids,
                "suggestions_fallback": result.fallback,
            }
        )
        self.store.upsert_response(self.assessment.id, FIRST_QUESTION, updated)
        self.logger.info("Q1 analyzed", suggested=result.vertical_ids, fallback=result.fallback)
        return self._suggestion_view(updated, catalog)

    async def next(self, answer=None) -> AssessmentView:
        """Question(n) -> Question(n+1)."""
        self._require_in_progress()
        number = self.assessment.active_question
        if number >= LAST_QUESTION:
            raise InvalidTransitionError("Use submit on the last question")

        answer = self._complete_answer(number, answer)

        target = number + 1
        await self._ensure_adapted(target)

        self.store.set_position(self.assessment, target, self.clock())
        self.logger.info("Moved to next question", question_number=target)
        return self.view()

    def previous(self, answer=None) -> AssessmentView:
        """Question(n) -> Question(n-1). Saves the answer, no validation."""
        self._require_in_progress()
        number = self.assessment.active_question
        if number <= FIRST_QUESTION:
            raise InvalidTransitionError("Already on the first question")

        if answer is not None:
            answer = self._accept_answer(get_question(number), answer)
            self.store.upsert_response(self.assessment.id, number, answer)

        self.store.set_position(self.assessment, number - 1, self.clock())
        return self.view()

    def submit(self, answer=None) -> SubmitResult:
        """Question(5) -> Completed, then queue scoring.

        A failure to mark completed aborts the transition. A failure to queue
        scoring is reported as a notice only.
        """
        self._require_in_progress()
        if self.assessment.active_question != LAST_QUESTION:
            raise InvalidTransitionError("Answer all questions before submitting")

        self._complete_answer(LAST_QUESTION, answer)

        completed_at = self.clock()
        try:
            self.store.mark_completed(self.assessment, completed_at)
        except SQLAlchemyError as e:
            self.store.db.rollback()
            self.logger.error("Failed to mark assessment completed", error=str(e))
            self.analytics.record_failure(self.assessment.id, "status_update", str(e))
            raise SubmissionFailedError() from e

        self.logger.info("Assessment submitted")

        notice = None
        try:
            self.scoring.trigger(self.assessment.id)
        except Exception as e:
            self.store.db.rollback()
            self.logger.error("Failed to queue scoring", error=str(e))
            self.analytics.record_failure(self.assessment.id, "initial_analysis", str(e))
            notice = SCORING_NOTICE

        return SubmitResult(status="completed", completed_at=completed_at, notice=notice)

    async def request_ai_help(self, current_text: Optional[str] = None) -> AIHelpResult:
        """Draft help for the active question. The saved answer is not touched."""
        self._require_in_progress()
        number = self.assessment.active_question
        question = get_question(number)

        if current_text is None:
            current_text = answer_text(self.store.load_answer(self.assessment.id, number))

        prior = self._prior_answers()
        try:
            result = await self.ai_help.draft(
                question,
                self.shown_scenario(number),
                current_text,
                prior,
                self.chapter_name,
            )
        except RelevanceRejectedError:
            self.analytics.record_ai_help(self.assessment.id, number, accepted=False)
            raise

        self.analytics.record_ai_help(self.assessment.id, number, accepted=result.prefill is not None)
        return result

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_in_progress(self) -> None:
        if self.assessment.is_completed:
            raise AssessmentCompletedError()

    def _accept_answer(self, question: QuestionDefinition, answer):
        """Type-check a client answer and keep server-owned Q1 analysis fields."""
        if not isinstance(answer, ANSWER_TYPES[question.question_type]):
            raise AssessmentValidationError(WRONG_ANSWER_TYPE, question.number, field="answer")

        if isinstance(answer, RankedCategoryAnswer):
            stored = self.store.load_answer(self.assessment.id, question.number)
            if not isinstance(stored, RankedCategoryAnswer):
                stored = RankedCategoryAnswer()
            answer = answer.model_copy(
                update={
                    "has_analyzed": stored.has_analyzed,
                    "analyzed_text": stored.analyzed_text,
                    "suggested_vertical_ids": stored.suggested_vertical_ids,
                    "suggestions_fallback": stored.suggestions_fallback,
                }
            )
        return answer

    def _complete_answer(self, number: int, answer):
        """Validate, persist and record completion for the active question."""
        question = get_question(number)
        if answer is None:
            answer = self.store.load_answer(self.assessment.id, number)
        else:
            answer = self._accept_answer(question, answer)

        catalog_ids = None
        if number == FIRST_QUESTION:
            catalog_ids = [v.id for v in self.store.active_verticals(self.assessment.chapter_id)]

        message = validate_answer(question, answer, catalog_ids)
        if message:
            raise AssessmentValidationError(message, number)

        self.store.upsert_response(
            self.assessment.id, number, answer, question_text=self.shown_scenario(number)
        )

        now = self.clock()
        started = self.assessment.question_started_at
        elapsed = int((now - started).total_seconds()) if started else None
        self.analytics.record_completion(
            self.assessment.id,
            number,
            response_length=len(answer_text(answer)),
            time_to_complete_seconds=elapsed,
        )
        return answer

    async def _ensure_adapted(self, target: int) -> Optional[AdaptedQuestion]:
        """Adapt ``target`` once; reuse a cached adaptation on later visits."""
        cached = self.store.get_adaptation(self.assessment.id, target)
        if cached:
            return cached

        prior = self._prior_answers()
        if missing_preconditions(target, prior) is None and not self._adaptation_allowed():
            outcome = AdaptationOutcome.skipped(RATE_LIMITED)
        else:
            outcome = await self.adapter.adapt(target, prior, self.chapter_name)

        if outcome.adapted is not None:
            self.store.save_adaptation(self.assessment.id, target, outcome.adapted)

        self.analytics.record_adaptation(self.assessment.id, target, outcome)
        return outcome.adapted

    def _adaptation_allowed(self) -> bool:
        result = self.rate_limiter.check(
            f"adapt:{self.assessment.id}",
            settings.ADAPT_RATE_LIMIT,
            settings.ADAPT_RATE_WINDOW,
        )
        return result.allowed

    def _prior_answers(self) -> PriorAnswers:
        answers = self.store.load_answers(self.assessment.id)
        catalog = self.store.active_verticals(self.assessment.chapter_id)
        return build_prior_answers(answers, catalog)

    def _question_view(self, question: QuestionDefinition, adaptation: Optional[AdaptedQuestion]) -> QuestionView:
        return QuestionView(
            number=question.number,
            title=question.title,
            question_type=question.question_type,
            scenario=adaptation.scenario if adaptation else question.render(self.chapter_name),
            is_adapted=adaptation is not None,
            context_summary=adaptation.context_summary if adaptation else None,
            placeholder=question.placeholder,
            min_chars=question.min_chars,
            max_chars=question.max_chars,
            options=[ChoiceOptionView(value=o.value, label=o.label) for o in question.options],
            ranking_instructions=(
                question.render_ranking_instructions(self.chapter_name)
                if question.ranking_instructions
                else None
            ),
        )

    def _suggestion_view(self, answer: RankedCategoryAnswer, catalog: Sequence[Vertical]) -> SuggestionView:
        by_id = {vertical.id: vertical for vertical in catalog}
        return SuggestionView(
            vertical_ids=answer.suggested_vertical_ids,
            fallback=answer.suggestions_fallback,
            verticals=[
                VerticalItem.model_validate(by_id[vid])
                for vid in answer.suggested_vertical_ids
                if vid in by_id
            ],
        )
