"""Adaptation chain: preconditions, step ordering and fallback reasons."""

import pytest

from api.integrations.claude import ClaudeError
from api.services.question_adapter import (
    INVALID_OUTPUT,
    MODEL_ERROR,
    PRECONDITION_MISSING,
    TIMEOUT,
    PriorAnswers,
    QuestionAdapter,
    keeps_constant,
    missing_preconditions,
)

from conftest import INITIATIVE_TEXT, PROBLEM_TEXT, FakeClaude

FULL_PRIOR = PriorAnswers(
    problem_text=PROBLEM_TEXT,
    vertical_names=("Climate Change", "Health", "Learning"),
    initiative_text=INITIATIVE_TEXT,
)


@pytest.mark.parametrize(
    "number, prior, missing",
    [
        (2, PriorAnswers(), "q1_text"),
        (2, PriorAnswers(problem_text=PROBLEM_TEXT), "q1_verticals"),
        (3, PriorAnswers(problem_text=PROBLEM_TEXT, vertical_names=("Health",)), "q2_text"),
        (4, PriorAnswers(initiative_text=INITIATIVE_TEXT), "q1_text"),
        (5, PriorAnswers(problem_text=PROBLEM_TEXT), "q2_text"),
        (1, FULL_PRIOR, "not_adaptable"),
        (5, FULL_PRIOR, None),
    ],
)
def test_missing_preconditions(number, prior, missing):
    assert missing_preconditions(number, prior) == missing


async def test_precondition_missing_makes_no_model_calls():
    claude = FakeClaude()
    outcome = await QuestionAdapter(claude).adapt(2, PriorAnswers(problem_text=PROBLEM_TEXT), "Yi Erode")

    assert outcome.adapted is None
    assert outcome.reason == PRECONDITION_MISSING
    assert not outcome.was_attempted
    assert claude.calls == []


@pytest.mark.parametrize(
    "number, steps, summary",
    [
        (2, ["summary", "scenario"], "waste management issues"),
        (3, ["summary", "summary", "scenario"], "waste management issues"),
        (4, ["summary", "summary", "domains", "scenario"], "waste management issues"),
        (5, ["summary", "scenario"], "waste management issues"),
    ],
)
async def test_adaptation_steps_run_in_order(number, steps, summary):
    claude = FakeClaude()
    outcome = await QuestionAdapter(claude).adapt(number, FULL_PRIOR, "Yi Erode")

    assert claude.calls == steps
    assert outcome.reason is None
    assert outcome.adapted.context_summary == summary
    assert "Saturday" in outcome.adapted.scenario


async def test_q4_keeps_extracted_domains():
    claude = FakeClaude()
    outcome = await QuestionAdapter(claude).adapt(4, FULL_PRIOR, "Yi Erode")
    assert outcome.adapted.domains == ("public health", "volunteer management", "civic outreach")


async def test_q2_prompt_names_selected_verticals():
    claude = FakeClaude()
    await QuestionAdapter(claude).adapt(2, FULL_PRIOR, "Yi Erode")
    user_prompt = claude.messages[-1][1]["content"]
    assert "Climate Change, Health, Learning" in user_prompt
    assert "Keep these details exactly as written: 6 months, ₹50,000, 10,000+" in user_prompt


async def test_dropped_constant_is_invalid_output():
    claude = FakeClaude(scenario="How would you reach people with your plan over the next year?")
    outcome = await QuestionAdapter(claude).adapt(2, FULL_PRIOR, "Yi Erode")

    assert outcome.adapted is None
    assert outcome.reason == INVALID_OUTPUT
    assert "6 months" in outcome.context["error"]


@pytest.mark.parametrize(
    "text, constant, kept",
    [
        ("reach 10,000+ young people", "10,000+", True),
        ("by 6PM on Saturday", "6 PM", True),
        ("over the next 6 Months", "6 months", True),
        ("over the next 16 months", "6 months", False),
        ("a budget of ₹5,000", "₹50,000", False),
    ],
)
def test_keeps_constant(text, constant, kept):
    assert keeps_constant(text, constant) is kept


async def test_reworded_constants_are_accepted():
    scenario = "In 6 months with ₹50,000, how would you reach 10,000+ young people across Erode?"
    outcome = await QuestionAdapter(FakeClaude(scenario=scenario)).adapt(2, FULL_PRIOR, "Yi Erode")

    assert outcome.reason is None
    assert outcome.adapted.scenario == scenario


async def test_model_error_falls_back():
    claude = FakeClaude(summary=ClaudeError("overloaded"))
    outcome = await QuestionAdapter(claude).adapt(3, FULL_PRIOR, "Yi Erode")

    assert outcome.reason == MODEL_ERROR
    assert outcome.fallback_used
    assert outcome.was_attempted
    # The chain stops at the first failed step
    assert claude.calls == ["summary"]


async def test_too_few_domains_is_a_model_error():
    claude = FakeClaude(domains='["fundraising"]')
    outcome = await QuestionAdapter(claude).adapt(4, FULL_PRIOR, "Yi Erode")
    assert outcome.reason == MODEL_ERROR


async def test_slow_chain_times_out():
    claude = FakeClaude(delay=0.5)
    outcome = await QuestionAdapter(claude, timeout_seconds=0.05).adapt(2, FULL_PRIOR, "Yi Erode")

    assert outcome.adapted is None
    assert outcome.reason == TIMEOUT
    assert outcome.duration_ms < 500
