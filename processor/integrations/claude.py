"""Claude AI integration for post-submission scoring.

Each scoring dimension is one call returning structured JSON sub-scores.
The processor turns those into dimension totals and role recommendations;
the model never picks the role.
"""

import json
import re
from dataclasses import dataclass, field
from string import Template
from typing import Dict, Optional

import structlog
from anthropic import AsyncAnthropic, APIError

from processor.config import settings

logger = structlog.get_logger()


def safe_template_substitute(template: str, **kwargs) -> str:
    """Safely substitute template variables without crashing on special chars.

    Uses string.Template which handles $variable syntax and doesn't crash
    on curly braces in user content. Falls back to simple replacement.
    """
    converted = template.replace("{{", "__DOUBLE_OPEN__").replace("}}", "__DOUBLE_CLOSE__")
    converted = converted.replace("$", "$$")
    converted = re.sub(r'\{(\w+)\}', r'${\1}', converted)
    converted = converted.replace("__DOUBLE_OPEN__", "{").replace("__DOUBLE_CLOSE__", "}")

    try:
        return Template(converted).safe_substitute(**kwargs)
    except ValueError:
        result = template
        for key, value in kwargs.items():
            result = result.replace(f"{{{key}}}", str(value))
        return result


@dataclass
class DimensionScore:
    """Sub-scores for one dimension plus the model's reasoning."""

    scores: Dict[str, int] = field(default_factory=dict)
    reasoning: str = ""
    raw_response: str = ""

    @property
    def total(self) -> int:
        return max(0, min(100, sum(self.scores.values())))


class ClaudeClient:
    """Client for Claude AI API, used by the scoring processor."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.client = AsyncAnthropic(
            api_key=api_key or settings.ANTHROPIC_API_KEY,
            timeout=settings.CLAUDE_TIMEOUT_SECONDS,
        )
        self.model = model or settings.CLAUDE_MODEL
        self.max_tokens = settings.CLAUDE_MAX_TOKENS

    async def score_dimension(
        self,
        system_prompt: str,
        prompt: str,
        criteria: Dict[str, int],
        temperature: Optional[float] = None,
    ) -> DimensionScore:
        """Score one dimension.

        Args:
            system_prompt: Assessor persona
            prompt: Question, candidate response and rubric
            criteria: Sub-score name -> maximum points

        Returns:
            DimensionScore with every criterion present and clamped to its maximum

        Raises:
            ClaudeError: On API failure or an unusable response
        """
        if not self.client.api_key:
            raise ClaudeError("ANTHROPIC_API_KEY is not configured")

        schema = ", ".join(f'"{name}": <0-{limit}>' for name, limit in criteria.items())
        instructions = (
            f"{prompt}\n\nRespond with JSON only, in this shape:\n"
            f'{{"scores": {{{schema}}}, "reasoning": "<one or two sentences>"}}'
        )

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=temperature if temperature is not None else settings.SCORING_TEMPERATURE,
                system=system_prompt,
                messages=[{"role": "user", "content": instructions}],
            )
        except APIError as e:
            logger.error("Claude API error during scoring", error=str(e))
            raise ClaudeError(f"Scoring failed: {str(e)}") from e

        raw_response = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return self._parse_dimension_response(raw_response, criteria)

    def _parse_dimension_response(self, response: str, criteria: Dict[str, int]) -> DimensionScore:
        try:
            data = json.loads(self._extract_json(response))
            raw_scores = data["scores"]
            scores = {}
            for name, limit in criteria.items():
                scores[name] = max(0, min(limit, int(raw_scores[name])))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Unparseable scoring response", error=str(e))
            raise ClaudeError(f"Invalid scoring response: {str(e)}") from e

        return DimensionScore(
            scores=scores,
            reasoning=str(data.get("reasoning") or ""),
            raw_response=response,
        )

    def _extract_json(self, text: str) -> str:
        """Extract JSON from a response that may contain other text."""
        start = text.find("{")
        end = text.rfind("}") + 1

        if start != -1 and end > start:
            return text[start:end]

        raise ValueError("No JSON found in response")


class ClaudeError(Exception):
    """Raised when Claude API calls fail."""

    pass
