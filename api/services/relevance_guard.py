"""Keyword guard for AI-drafted Q2 answers.

If the candidate's Q1 text names a specific scenario (one of the configured
triggers), an AI draft must mention at least one of the detected keywords.
Anything outside the configured keyword family passes unchecked.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import structlog

from api.config.settings import settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class GuardTrigger:
    """A keyword, optionally counted only when ``requires`` also appears."""

    keyword: str
    requires: Optional[str] = None

    @classmethod
    def parse(cls, spec: str) -> "GuardTrigger":
        """Parse ``"keyword"`` or ``"keyword+term"``."""
        keyword, _, requires = spec.partition("+")
        return cls(keyword=keyword.strip().lower(), requires=requires.strip().lower() or None)

    def matches(self, lowered_text: str) -> bool:
        if self.keyword not in lowered_text:
            return False
        return self.requires is None or self.requires in lowered_text


@dataclass(frozen=True)
class GuardDecision:
    accepted: bool
    detected: tuple[str, ...] = ()


class RelevanceGuard:
    """Rejects drafts that ignore a scenario the candidate described."""

    def __init__(self, triggers: Iterable[GuardTrigger]):
        self.triggers = tuple(triggers)

    @classmethod
    def from_settings(cls, specs: Optional[Sequence[str]] = None) -> "RelevanceGuard":
        specs = settings.RELEVANCE_GUARD_TRIGGERS if specs is None else specs
        return cls(GuardTrigger.parse(spec) for spec in specs if spec.strip())

    def detect(self, text: str) -> tuple[str, ...]:
        """Keywords from the trigger set present in ``text``."""
        lowered = text.lower()
        return tuple(trigger.keyword for trigger in self.triggers if trigger.matches(lowered))

    def check(self, draft: str, problem_text: str) -> GuardDecision:
        detected = self.detect(problem_text)
        if not detected:
            return GuardDecision(accepted=True)

        lowered_draft = draft.lower()
        if any(keyword in lowered_draft for keyword in detected):
            return GuardDecision(accepted=True, detected=detected)

        logger.warning("AI draft ignored the candidate's scenario", detected=list(detected))
        return GuardDecision(accepted=False, detected=detected)
