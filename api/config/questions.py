"""Static question templates for the five-question leadership assessment.

Templates use ``{chapter}`` placeholders filled with the chapter's display
name. The adapter treats these as the default question whenever adaptation
is skipped or fails.
"""

from dataclasses import dataclass, field
from typing import Optional

from api.integrations.claude import safe_template_substitute

# Question types
RANKED_CATEGORIES = "ranked_categories"
TEXT = "text"
SINGLE_CHOICE = "single_choice"

FIRST_QUESTION = 1
LAST_QUESTION = 5
REQUIRED_PRIORITIES = 3


@dataclass(frozen=True)
class ChoiceOption:
    value: str
    label: str


@dataclass(frozen=True)
class QuestionDefinition:
    """One static question template."""

    number: int
    title: str
    question_type: str
    scenario: str
    placeholder: str = ""
    min_chars: int = 0
    max_chars: Optional[int] = None
    options: tuple[ChoiceOption, ...] = ()
    # Phrases an adapted scenario must carry over unchanged
    preserved_constants: tuple[str, ...] = ()
    ranking_instructions: str = ""

    def render(self, chapter_name: str) -> str:
        """Scenario text with the chapter name filled in."""
        return safe_template_substitute(self.scenario, chapter=chapter_name)

    def render_ranking_instructions(self, chapter_name: str) -> str:
        return safe_template_substitute(self.ranking_instructions, chapter=chapter_name)

    @property
    def option_values(self) -> tuple[str, ...]:
        return tuple(option.value for option in self.options)


QUESTIONS: dict[int, QuestionDefinition] = {
    1: QuestionDefinition(
        number=1,
        title="Personal Irritation → Vertical Selection",
        question_type=RANKED_CATEGORIES,
        scenario=(
            "What problem in your city bothers you the most? Tell us about the "
            "moment when you thought 'I need to fix this'."
        ),
        placeholder="Share the problem that drives you...",
        min_chars=200,
        max_chars=800,
        ranking_instructions=(
            "Based on your answer, here are {chapter} areas that match your "
            "concern. Pick your top 3 (put them in order):"
        ),
    ),
    2: QuestionDefinition(
        number=2,
        title="Initiative Design",
        question_type=TEXT,
        scenario=(
            "{chapter} gives you 6 months and ₹50,000 to fix the problem from Q1. "
            "What would you do? Who would help you? How would you reach 10,000+ "
            "people? What change would you make?"
        ),
        placeholder="Describe your initiative design...",
        min_chars=100,
        max_chars=1000,
        preserved_constants=("6 months", "₹50,000", "10,000+"),
    ),
    3: QuestionDefinition(
        number=3,
        title="Saturday Emergency Response",
        question_type=TEXT,
        scenario=(
            "It's Saturday, 6 PM. You're with family. Your team leader calls: "
            "'We need help right now for tomorrow's big event. Can you come for "
            "3-4 hours?' What would you say?"
        ),
        placeholder="Describe exactly what you'd say and do...",
        min_chars=10,
        max_chars=500,
        preserved_constants=("Saturday", "6 PM", "3-4 hours"),
    ),
    4: QuestionDefinition(
        number=4,
        title="Your 2026 Goal",
        question_type=TEXT,
        scenario=(
            "What do you want to do in {chapter} 2026 that would make you really "
            "proud? What is your big goal? What change do you want to make? What "
            "problems might you face? How will you know you succeeded?"
        ),
        placeholder="Describe your 2026 aspiration...",
        min_chars=100,
        max_chars=400,
        preserved_constants=("2026",),
    ),
    5: QuestionDefinition(
        number=5,
        title="Team Deadline Scenario",
        question_type=SINGLE_CHOICE,
        scenario="Your team misses an important deadline. What do you do first?",
        options=(
            ChoiceOption("leader", "Lead: Bring the team together, make a new plan, take charge"),
            ChoiceOption("doer", "Do: Do the work myself to finish it"),
            ChoiceOption("learning", "Learn: Find out what went wrong, write it down"),
            ChoiceOption("strategic", "Support: Check if the team is okay, fix the real problem"),
        ),
    ),
}


def get_question(number: int) -> QuestionDefinition:
    """Look up a question definition, raising KeyError for unknown numbers."""
    return QUESTIONS[number]
