"""Per-question answer rules."""

import pytest

from api.config.questions import QUESTIONS, get_question
from api.schemas.answers import (
    RankedCategoryAnswer,
    SingleChoiceAnswer,
    TextAnswer,
    parse_answer,
    serialize_answer,
)
from api.services.assessment_state import (
    NOT_ANALYZED,
    PART_A_TOO_SHORT,
    RANK_DISTINCT,
    RANK_THREE,
    SELECT_OPTION,
    WRONG_ANSWER_TYPE,
    validate_answer,
)

from conftest import PROBLEM_TEXT


def analyzed(text=PROBLEM_TEXT, priorities=(1, 2, 3)):
    return RankedCategoryAnswer(problem_text=text, priorities=list(priorities), has_analyzed=True)


def test_q1_short_problem_text_blocks():
    answer = analyzed(text="x" * 150)
    assert validate_answer(get_question(1), answer) == PART_A_TOO_SHORT


def test_q1_length_counts_every_character():
    assert validate_answer(get_question(1), analyzed(text="x" * 199)) == PART_A_TOO_SHORT
    assert validate_answer(get_question(1), analyzed(text="x" * 197 + "   ")) is None


def test_q1_requires_analysis():
    answer = RankedCategoryAnswer(problem_text=PROBLEM_TEXT, priorities=[1, 2, 3])
    assert validate_answer(get_question(1), answer) == NOT_ANALYZED


def test_q1_requires_three_priorities():
    assert validate_answer(get_question(1), analyzed(priorities=(1, 2))) == RANK_THREE


def test_q1_rejects_duplicate_priorities():
    assert validate_answer(get_question(1), analyzed(priorities=(1, 1, 2))) == RANK_DISTINCT


def test_q1_rejects_priorities_outside_catalog():
    message = validate_answer(get_question(1), analyzed(priorities=(1, 2, 99)), catalog_ids=[1, 2, 3])
    assert message == RANK_THREE


def test_q1_valid_answer_passes():
    assert validate_answer(get_question(1), analyzed(), catalog_ids=[1, 2, 3, 4]) is None


def test_missing_answer_uses_empty_variant():
    assert validate_answer(get_question(1), None) == PART_A_TOO_SHORT
    assert validate_answer(get_question(2), None) == "Please write at least 100 characters"
    assert validate_answer(get_question(5), None) == SELECT_OPTION


@pytest.mark.parametrize(
    "number, minimum",
    [(2, 100), (3, 10), (4, 100)],
)
def test_text_minimums(number, minimum):
    question = get_question(number)
    assert validate_answer(question, TextAnswer(text="a" * (minimum - 1))) == (
        f"Please write at least {minimum} characters"
    )
    assert validate_answer(question, TextAnswer(text="a" * minimum)) is None


def test_q5_requires_known_option():
    question = get_question(5)
    assert validate_answer(question, SingleChoiceAnswer(choice="boss")) == SELECT_OPTION
    for value in question.option_values:
        assert validate_answer(question, SingleChoiceAnswer(choice=value)) is None


def test_wrong_answer_type():
    assert validate_answer(get_question(2), SingleChoiceAnswer(choice="leader")) == WRONG_ANSWER_TYPE


def test_questions_carry_fixed_constants():
    assert QUESTIONS[2].preserved_constants == ("6 months", "₹50,000", "10,000+")
    assert QUESTIONS[3].preserved_constants == ("Saturday", "6 PM", "3-4 hours")
    assert QUESTIONS[4].preserved_constants == ("2026",)
    assert "Yi Erode" in QUESTIONS[2].render("Yi Erode")


def test_stored_answer_uses_camel_case_keys():
    raw = serialize_answer(analyzed())
    assert '"problemText"' in raw
    assert '"hasAnalyzed":true' in raw
    parsed = parse_answer(raw)
    assert isinstance(parsed, RankedCategoryAnswer)
    assert parsed.priorities == [1, 2, 3]
