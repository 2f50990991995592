"""Personalize questions 2-5 from the candidate's earlier answers.

Adaptation is a short chain of typed model steps:

1. ``extract_summary`` - compress a prior free-text answer to a few words
2. ``extract_domains`` - Q4 only, 2-4 skill/domain keywords
3. ``generate_scenario`` - rewrite the static template around those summaries

Each step depends on the previous one, so they run sequentially. Any failure
aborts the whole chain and the caller shows the static question instead.
"""

import asyncio
import json
import re
import time
from dataclasses import dataclass, field
from typing import Optional

import structlog

from api.config.questions import QuestionDefinition, get_question
from api.config.settings import settings
from api.integrations.claude import ClaudeClient, ClaudeError, extract_json, safe_template_substitute

logger = structlog.get_logger()

ADAPTABLE_QUESTIONS = (2, 3, 4, 5)

# Fallback reasons recorded in analytics
PRECONDITION_MISSING = "precondition_missing"
MODEL_ERROR = "model_error"
TIMEOUT = "timeout"
INVALID_OUTPUT = "invalid_output"
RATE_LIMITED = "rate_limited"

# (min words, max words) for the generated scenario
WORD_BUDGETS = {
    2: (150, 200),
    3: (60, 100),
    4: (80, 120),
    5: (40, 70),
}

# Q2 default, reworded so it reads naturally in front of the candidate's own problem
DEFAULT_Q2_TEMPLATE = (
    "Let's say {chapter} gives you 6 months and ₹50,000 to work on the problem you "
    "described in Q1. Design your initiative: What specific actions would you take? "
    "How would you reach 10,000+ people? What lasting change would you create?"
)


# =============================================================================
# Step contracts
# =============================================================================


@dataclass(frozen=True)
class PriorAnswers:
    """The prior answers adaptation may draw on."""

    problem_text: str = ""
    vertical_names: tuple[str, ...] = ()
    initiative_text: str = ""


@dataclass(frozen=True)
class SummarySpec:
    """What to summarize and how short the summary must be."""

    subject: str
    min_words: int
    max_words: int
    examples: tuple[str, ...]


PROBLEM_SUMMARY = SummarySpec(
    subject="main problem",
    min_words=2,
    max_words=5,
    examples=("waste management issues", "lack of youth programs", "poor road conditions"),
)

INITIATIVE_SUMMARY = SummarySpec(
    subject="proposed initiative",
    min_words=3,
    max_words=7,
    examples=("school awareness campaign on waste", "weekend road safety volunteer drive"),
)


@dataclass(frozen=True)
class ScenarioRequest:
    """Everything the generation step needs."""

    question: QuestionDefinition
    base_scenario: str
    chapter_name: str
    problem_summary: Optional[str] = None
    initiative_summary: Optional[str] = None
    vertical_names: tuple[str, ...] = ()
    domains: tuple[str, ...] = ()
    problem_excerpt: str = ""


@dataclass(frozen=True)
class AdaptedQuestion:
    """Personalized scenario text and a short note on what it was built from."""

    scenario: str
    context_summary: str
    domains: tuple[str, ...] = ()


@dataclass(frozen=True)
class AdaptationOutcome:
    """Either an adapted question or the reason the static one must be used."""

    adapted: Optional[AdaptedQuestion]
    reason: Optional[str] = None
    duration_ms: int = 0
    context: dict = field(default_factory=dict)

    @property
    def fallback_used(self) -> bool:
        return self.adapted is None

    @property
    def was_attempted(self) -> bool:
        """True when the model chain actually ran."""
        return self.reason not in (PRECONDITION_MISSING, RATE_LIMITED)

    @classmethod
    def skipped(cls, reason: str) -> "AdaptationOutcome":
        return cls(adapted=None, reason=reason)


class InvalidScenarioError(ValueError):
    """Generated text dropped a constant the question depends on."""


# =============================================================================
# Steps
# =============================================================================


def _clean(text: str) -> str:
    return text.strip().strip('"').strip("'").strip()


async def extract_summary(claude: ClaudeClient, text: str, spec: SummarySpec) -> str:
    """Compress ``text`` to a short phrase naming its ``spec.subject``."""
    word_range = f"{spec.min_words}-{spec.max_words}"
    examples = ", ".join(f'"{example}"' for example in spec.examples)
    messages = [
        {
            "role": "system",
            "content": (
                f"You are an expert at extracting concise summaries. Extract a {word_range} word "
                f"summary of the {spec.subject} described in the text. Be specific and use the "
                "exact terminology from the text."
            ),
        },
        {
            "role": "user",
            "content": (
                f'Extract a {word_range} word summary from this text:\n\n"{text}"\n\n'
                f"Respond with ONLY the {word_range} word summary, nothing else. "
                f"Examples: {examples}."
            ),
        },
    ]
    summary = _clean(
        await claude.complete(messages, temperature=settings.EXTRACTION_TEMPERATURE, max_tokens=50)
    )
    if not summary:
        raise ClaudeError("Empty summary")
    return summary


async def extract_domains(claude: ClaudeClient, problem_text: str, initiative_text: str) -> list[str]:
    """Pick 2-4 skill or domain keywords relevant to the candidate's plan."""
    messages = [
        {
            "role": "system",
            "content": "You identify the skills and domains a community initiative draws on.",
        },
        {
            "role": "user",
            "content": (
                f'Problem: "{problem_text[:500]}"\n\nInitiative: "{initiative_text[:500]}"\n\n'
                "List 2-4 short skill or domain keywords this work needs. "
                'Respond with ONLY a JSON array of strings, e.g. ["public health", "fundraising"].'
            ),
        },
    ]
    raw = await claude.complete(messages, temperature=settings.EXTRACTION_TEMPERATURE, max_tokens=100)
    parsed = json.loads(extract_json(raw))
    if not isinstance(parsed, list):
        raise ValueError("Domains response was not a list")

    domains = [str(item).strip() for item in parsed if str(item).strip()]
    if len(domains) < 2:
        raise ValueError("Too few domains extracted")
    return domains[:4]


def _scenario_instructions(request: ScenarioRequest) -> list[str]:
    number = request.question.number
    rules = []

    if number == 2:
        rules.append(
            "Open by acknowledging their specific problem using the summary "
            f'(e.g., "You described being irritated by {request.problem_summary}...")'
        )
        rules.append(f"Mention they selected these verticals: {', '.join(request.vertical_names)}")
        rules.append("Ask how they would reach 10,000+ people")
        rules.append("End by asking about the lasting change they would create")
    elif number == 3:
        rules.append(
            f'Make the emergency about their own initiative ("{request.initiative_summary}") '
            f'addressing "{request.problem_summary}"'
        )
        rules.append("End by asking what they would say and do")
    elif number == 4:
        rules.append(
            f'Connect the 2026 goal to their problem ("{request.problem_summary}") '
            f'and initiative ("{request.initiative_summary}")'
        )
        if request.domains:
            rules.append(f"Invite them to draw on these areas: {', '.join(request.domains)}")
        rules.append("Ask what success would look like and what obstacles they expect")
    elif number == 5:
        rules.append(
            f'Frame the missed deadline as part of their initiative ("{request.initiative_summary}")'
        )
        rules.append("End by asking what they do first")

    if request.question.preserved_constants:
        constants = ", ".join(request.question.preserved_constants)
        rules.append(f"Keep these details exactly as written: {constants}")

    low, high = WORD_BUDGETS[number]
    rules.append("End with exactly one closing question")
    rules.append("Keep it conversational and encouraging")
    rules.append(f"Total length should be {low}-{high} words")
    return rules


def keeps_constant(text: str, constant: str) -> bool:
    """True when ``text`` carries ``constant``, ignoring case and spacing ("6PM" keeps "6 PM")."""
    # Lookbehind keeps "16 months" from counting as "6 months"
    pattern = r"(?<![\d,.])" + r"\s*".join(re.escape(token) for token in constant.split())
    return re.search(pattern, text, re.IGNORECASE) is not None


async def generate_scenario(claude: ClaudeClient, request: ScenarioRequest) -> str:
    """Rewrite the static scenario around the candidate's summaries."""
    rules = _scenario_instructions(request)
    numbered = "\n".join(f"{idx}. {rule}" for idx, rule in enumerate(rules, start=1))

    context_lines = []
    if request.problem_excerpt:
        context_lines.append(f'Candidate\'s problem (from Q1): "{request.problem_excerpt}"')
    if request.problem_summary:
        context_lines.append(f'Problem summary: "{request.problem_summary}"')
    if request.initiative_summary:
        context_lines.append(f'Initiative summary: "{request.initiative_summary}"')
    if request.vertical_names:
        context_lines.append(f"Selected verticals: {', '.join(request.vertical_names)}")

    messages = [
        {
            "role": "system",
            "content": (
                f"You are adapting assessment questions for {request.chapter_name} leadership "
                "candidates. Create personalized questions that reference their responses while "
                "maintaining assessment integrity and constraints."
            ),
        },
        {
            "role": "user",
            "content": (
                f'Original Q{request.question.number}: "{request.base_scenario}"\n'
                + "\n".join(context_lines)
                + f"\n\nGenerate an adapted Q{request.question.number} that:\n{numbered}\n\n"
                "Respond with ONLY the adapted question text, nothing else."
            ),
        },
    ]
    scenario = _clean(await claude.complete(messages, temperature=settings.GENERATION_TEMPERATURE))

    missing = [c for c in request.question.preserved_constants if not keeps_constant(scenario, c)]
    if missing:
        raise InvalidScenarioError(f"Adapted scenario dropped: {', '.join(missing)}")
    return scenario


# =============================================================================
# Adapter
# =============================================================================


def missing_preconditions(question_number: int, prior: PriorAnswers) -> Optional[str]:
    """Describe the first unmet precondition, or None when adaptation may run."""
    has_problem = bool(prior.problem_text.strip())
    has_initiative = bool(prior.initiative_text.strip())

    if question_number == 2:
        if not has_problem:
            return "q1_text"
        if not prior.vertical_names:
            return "q1_verticals"
    elif question_number in (3, 4):
        if not has_problem:
            return "q1_text"
        if not has_initiative:
            return "q2_text"
    elif question_number == 5:
        if not has_initiative:
            return "q2_text"
    else:
        return "not_adaptable"
    return None


class QuestionAdapter:
    """Builds personalized scenarios, or reports why the default must be used."""

    def __init__(self, claude: ClaudeClient, timeout_seconds: Optional[float] = None):
        self.claude = claude
        self.timeout_seconds = timeout_seconds or settings.ADAPTATION_TIMEOUT_SECONDS

    async def adapt(
        self,
        question_number: int,
        prior: PriorAnswers,
        chapter_name: str,
    ) -> AdaptationOutcome:
        """Adapt one question. Never raises; failures become fallback outcomes."""
        missing = missing_preconditions(question_number, prior)
        if missing:
            logger.info(
                "Adaptation skipped, precondition missing",
                question_number=question_number,
                missing=missing,
            )
            return AdaptationOutcome(
                adapted=None, reason=PRECONDITION_MISSING, context={"missing": missing}
            )

        start = time.perf_counter()
        try:
            adapted = await asyncio.wait_for(
                self._run_chain(question_number, prior, chapter_name),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            reason, error = TIMEOUT, f"Exceeded {self.timeout_seconds}s"
        except InvalidScenarioError as e:
            reason, error = INVALID_OUTPUT, str(e)
        except (ClaudeError, ValueError) as e:
            reason, error = MODEL_ERROR, str(e)
        else:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.info(
                "Question adapted",
                question_number=question_number,
                duration_ms=duration_ms,
                context_summary=adapted.context_summary,
            )
            return AdaptationOutcome(adapted=adapted, duration_ms=duration_ms)

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.warning(
            "Adaptation failed, using default question",
            question_number=question_number,
            reason=reason,
            error=error,
            duration_ms=duration_ms,
        )
        return AdaptationOutcome(
            adapted=None, reason=reason, duration_ms=duration_ms, context={"error": error}
        )

    async def _run_chain(
        self,
        question_number: int,
        prior: PriorAnswers,
        chapter_name: str,
    ) -> AdaptedQuestion:
        question = get_question(question_number)
        if question_number == 2:
            base = safe_template_substitute(DEFAULT_Q2_TEMPLATE, chapter=chapter_name)
        else:
            base = question.render(chapter_name)

        problem_summary = None
        initiative_summary = None
        domains: tuple[str, ...] = ()

        if question_number in (2, 3, 4):
            problem_summary = await extract_summary(self.claude, prior.problem_text, PROBLEM_SUMMARY)
        if question_number in (3, 4, 5):
            initiative_summary = await extract_summary(
                self.claude, prior.initiative_text, INITIATIVE_SUMMARY
            )
        if question_number == 4:
            domains = tuple(
                await extract_domains(self.claude, prior.problem_text, prior.initiative_text)
            )

        scenario = await generate_scenario(
            self.claude,
            ScenarioRequest(
                question=question,
                base_scenario=base,
                chapter_name=chapter_name,
                problem_summary=problem_summary,
                initiative_summary=initiative_summary,
                vertical_names=prior.vertical_names if question_number == 2 else (),
                domains=domains,
                problem_excerpt=prior.problem_text[:500] if question_number == 2 else "",
            ),
        )

        context_summary = problem_summary if question_number in (2, 4) else initiative_summary
        return AdaptedQuestion(scenario=scenario, context_summary=context_summary, domains=domains)
