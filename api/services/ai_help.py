"""AI-assisted drafting for the active question.

Returns three example answers (or, for the single-choice question, an
explanation of the options). Q2 drafts must pass the relevance guard.
"""

import json
from dataclasses import dataclass, field
from typing import Optional

import structlog

from api.config.questions import RANKED_CATEGORIES, SINGLE_CHOICE, QuestionDefinition
from api.config.settings import settings
from api.integrations.claude import ClaudeClient, ClaudeError, extract_json
from api.services.exceptions import AIHelpError, RelevanceRejectedError
from api.services.question_adapter import PriorAnswers
from api.services.relevance_guard import RelevanceGuard

logger = structlog.get_logger()

Q1_REQUIRED_MESSAGE = "Please finish and save your Q1 answer before using AI Help here."

# Approximate target length per question (about half the character cap)
TARGET_CHARS = {1: 400, 2: 500, 3: 250, 4: 200}

QUESTION_GUIDANCE = {
    1: [
        "Express genuine emotional impact of a community problem",
        "Share a specific moment that drove their concern",
        "Explain why this problem matters personally",
        "Connect their concern to broader community impact",
    ],
    2: [
        "Start by referencing the candidate's specific problem in the first sentence",
        "Propose a concrete initiative that solves THEIR problem (not a generic one)",
        "Align with their selected verticals",
        "Include measurable objectives for reaching 10,000+ people",
        "Plan activities within the ₹50,000 budget and 6-month timeline",
        "Explain the expected change specific to their problem",
    ],
    3: [
        "Reference their initiative where it is known",
        "Show different commitment levels (immediate yes, conditional yes, apologetic no)",
        "Explain reasoning and constraints honestly",
        "Demonstrate responsibility and self-awareness",
    ],
    4: [
        "Describe a specific, ambitious goal for 2026",
        "Connect naturally to their problem and initiative interests",
        "Anticipate realistic challenges (resources, buy-in, scale)",
        "Define what success would look like with measurable criteria",
    ],
}


@dataclass(frozen=True)
class HelpSuggestion:
    title: str
    content: str


@dataclass(frozen=True)
class AIHelpResult:
    """Drafted help. ``prefill`` is the text to put in the answer box, if any."""

    question_number: int
    suggestions: list[HelpSuggestion] = field(default_factory=list)
    explanation: Optional[str] = None

    @property
    def prefill(self) -> Optional[str]:
        return self.suggestions[0].content if self.suggestions else None


class AIHelpService:
    """Drafts example answers with the model."""

    def __init__(self, claude: ClaudeClient, guard: RelevanceGuard):
        self.claude = claude
        self.guard = guard

    async def draft(
        self,
        question: QuestionDefinition,
        scenario: str,
        current_text: str,
        prior: PriorAnswers,
        chapter_name: str,
    ) -> AIHelpResult:
        """Draft help for ``question``.

        Raises:
            AIHelpError: Missing Q1 context for Q2, or model/parse failure
            RelevanceRejectedError: Q2 draft ignored the candidate's scenario
        """
        if question.number == 2 and not prior.problem_text.strip():
            raise AIHelpError(Q1_REQUIRED_MESSAGE)

        if question.question_type == SINGLE_CHOICE:
            return await self._explain_options(question, scenario, current_text, prior, chapter_name)

        messages = self._suggestion_messages(question, scenario, current_text, prior, chapter_name)
        try:
            raw = await self.claude.complete(messages, temperature=settings.AI_HELP_TEMPERATURE)
            suggestions = self._parse_suggestions(raw)
        except (ClaudeError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("AI help failed", question_number=question.number, error=str(e))
            raise AIHelpError() from e

        result = AIHelpResult(question_number=question.number, suggestions=suggestions)

        if question.number == 2:
            decision = self.guard.check(result.prefill, prior.problem_text)
            if not decision.accepted:
                raise RelevanceRejectedError()

        logger.info("AI help drafted", question_number=question.number, count=len(suggestions))
        return result

    async def _explain_options(
        self,
        question: QuestionDefinition,
        scenario: str,
        current_choice: str,
        prior: PriorAnswers,
        chapter_name: str,
    ) -> AIHelpResult:
        options = "\n".join(f"- {option.value}: {option.label}" for option in question.options)
        if prior.initiative_text.strip():
            system = (
                f"You are a helpful assistant for the {chapter_name} leadership assessment.\n"
                f'The candidate designed this initiative: "{prior.initiative_text[:200]}..."\n'
                "Explain each leadership style option in the context of THEIR specific initiative. "
                "Provide 3-4 sentences per style."
            )
        else:
            system = (
                f"You are a helpful assistant for the {chapter_name} leadership assessment.\n"
                "Provide a brief explanation of what each leadership style option means and "
                "when it's most effective."
            )
        messages = [
            {"role": "system", "content": system},
            {
                "role": "user",
                "content": (
                    f"Scenario: {scenario}\nOptions:\n{options}\n"
                    f"Current selection: {current_choice or 'None selected yet'}"
                ),
            },
        ]
        try:
            explanation = await self.claude.complete(messages, temperature=settings.AI_HELP_TEMPERATURE)
        except ClaudeError as e:
            logger.warning("AI help failed", question_number=question.number, error=str(e))
            raise AIHelpError() from e
        return AIHelpResult(question_number=question.number, explanation=explanation)

    def _suggestion_messages(
        self,
        question: QuestionDefinition,
        scenario: str,
        current_text: str,
        prior: PriorAnswers,
        chapter_name: str,
    ) -> list[dict]:
        guidance = "\n".join(
            f"{idx}. {line}" for idx, line in enumerate(QUESTION_GUIDANCE[question.number], start=1)
        )
        target = TARGET_CHARS[question.number]
        system = (
            f"You are a helpful writing assistant for the {chapter_name} leadership assessment.\n"
            "Generate 3 complete, authentic example responses that candidates can choose from.\n"
            f"Each response should:\n{guidance}\n"
            "Make each example take a DIFFERENT approach.\n"
            f"Each response should be approximately {target} characters.\n"
            'Respond with ONLY JSON: {"suggestions": [{"title": "3-5 word title", "content": "..."}]}'
        )

        context = []
        if question.question_type != RANKED_CATEGORIES and prior.problem_text.strip():
            context.append(f'Candidate\'s problem (from Q1): "{prior.problem_text[:400]}"')
        if question.number == 2 and prior.vertical_names:
            context.append(f"Selected focus areas: {', '.join(prior.vertical_names)}")
        if question.number in (3, 4) and prior.initiative_text.strip():
            context.append(f'Their initiative (from Q2): "{prior.initiative_text[:300]}"')

        user = "\n".join(
            [f'Question: "{question.title}"', f"Scenario: {scenario}", *context]
            + [
                f"Current text ({len(current_text)} characters): {current_text or 'Nothing written yet'}",
                "Generate 3 complete, different example responses.",
            ]
        )
        return [{"role": "system", "content": system}, {"role": "user", "content": user}]

    def _parse_suggestions(self, raw: str) -> list[HelpSuggestion]:
        data = json.loads(extract_json(raw))
        items = data["suggestions"] if isinstance(data, dict) else data
        suggestions = [
            HelpSuggestion(title=str(item["title"]).strip(), content=str(item["content"]).strip())
            for item in items
            if str(item.get("content", "")).strip()
        ]
        if not suggestions:
            raise ValueError("No suggestions in response")
        return suggestions[:3]
