"""Answer payloads, one variant per question type.

Stored as JSON in ``assessment_responses.response_data`` and tagged by
``kind``. Consumers branch on the concrete class and raise ``TypeError``
for anything unrecognised.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from api.config.questions import RANKED_CATEGORIES, SINGLE_CHOICE, TEXT
from .base import CamelModel


class TextAnswer(CamelModel):
    """Free-text answer (Q2-Q4)."""

    kind: Literal["text"] = "text"
    text: str = ""


class RankedCategoryAnswer(CamelModel):
    """Q1: problem description plus the candidate's top verticals in order.

    The analysis fields are written by the analyze step only; drafts from the
    client cannot set them.
    """

    kind: Literal["ranked_categories"] = "ranked_categories"
    problem_text: str = ""
    priorities: list[int] = Field(default_factory=list, max_length=3)
    has_analyzed: bool = False
    analyzed_text: Optional[str] = None
    suggested_vertical_ids: list[int] = Field(default_factory=list)
    suggestions_fallback: bool = False


class SingleChoiceAnswer(CamelModel):
    """Q5: one option from a fixed set."""

    kind: Literal["single_choice"] = "single_choice"
    choice: Optional[str] = None


Answer = Annotated[
    Union[TextAnswer, RankedCategoryAnswer, SingleChoiceAnswer],
    Field(discriminator="kind"),
]

answer_adapter: TypeAdapter = TypeAdapter(Answer)

# Question type -> answer class
ANSWER_TYPES = {
    TEXT: TextAnswer,
    RANKED_CATEGORIES: RankedCategoryAnswer,
    SINGLE_CHOICE: SingleChoiceAnswer,
}


def parse_answer(raw: Optional[str]):
    """Load a stored answer, or None when nothing was saved."""
    if not raw:
        return None
    return answer_adapter.validate_json(raw)


def serialize_answer(answer) -> str:
    return answer.model_dump_json(by_alias=True)


def empty_answer(question_type: str):
    return ANSWER_TYPES[question_type]()


def answer_text(answer) -> str:
    """The free-text part of an answer, or an empty string."""
    if answer is None:
        return ""
    if isinstance(answer, TextAnswer):
        return answer.text
    if isinstance(answer, RankedCategoryAnswer):
        return answer.problem_text
    if isinstance(answer, SingleChoiceAnswer):
        return answer.choice or ""
    raise TypeError(f"Unknown answer type: {type(answer).__name__}")
