"""Vertical suggestion, relevance guard and rate limiter."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from api.integrations.claude import ClaudeError, extract_json
from api.models import RateLimit
from api.services.rate_limit import RateLimiter
from api.services.relevance_guard import GuardTrigger, RelevanceGuard
from api.services.vertical_suggestion import VerticalSuggester, select_valid_ids

from conftest import FakeClaude, PROBLEM_TEXT


# =============================================================================
# Vertical suggestion
# =============================================================================


def test_select_valid_ids_backfills_to_five():
    catalog = list(range(1, 11))
    assert select_valid_ids([7, 42, 3, 99], catalog) == [7, 3, 1, 2, 4]


def test_select_valid_ids_keeps_order_and_dedupes():
    assert select_valid_ids(["4", 2, 4, 9, True], list(range(1, 11))) == [4, 2, 9]


def test_select_valid_ids_truncates_to_five():
    assert select_valid_ids([1, 2, 3, 4, 5, 6, 7], list(range(1, 11))) == [1, 2, 3, 4, 5]


def test_extract_json_prefers_outermost_structure():
    assert extract_json('Sure: {"suggestions": [1, 2]} done') == '{"suggestions": [1, 2]}'
    assert extract_json("IDs: [3, 4, 5]") == "[3, 4, 5]"


async def test_suggester_uses_model_ids(db, chapter, verticals, store):
    claude = FakeClaude(suggest="[3, 4, 1]")
    result = await VerticalSuggester(claude).suggest(
        PROBLEM_TEXT, store.active_verticals(chapter.id), chapter_name=chapter.name
    )
    assert result.vertical_ids == [3, 4, 1]
    assert not result.fallback
    assert claude.calls == ["suggest"]


async def test_suggester_falls_back_on_model_error(db, chapter, verticals, store):
    claude = FakeClaude(suggest=ClaudeError("boom"))
    result = await VerticalSuggester(claude).suggest(PROBLEM_TEXT, store.active_verticals(chapter.id))
    assert result.vertical_ids == verticals[:5]
    assert result.fallback


async def test_suggester_falls_back_on_unparseable_reply(db, chapter, verticals, store):
    claude = FakeClaude(suggest="Climate Change looks like the best fit.")
    result = await VerticalSuggester(claude).suggest(PROBLEM_TEXT, store.active_verticals(chapter.id))
    assert result.fallback
    assert len(result.vertical_ids) == 5


# =============================================================================
# Relevance guard
# =============================================================================


def test_guard_rejects_draft_ignoring_stray_dogs():
    guard = RelevanceGuard.from_settings()
    decision = guard.check(
        "Launch a plastic-free market campaign with local vendors.",
        "stray dogs attacked me on my way home",
    )
    assert not decision.accepted
    assert "stray+dog" not in decision.detected
    assert "stray" in decision.detected


def test_guard_accepts_draft_mentioning_keyword():
    guard = RelevanceGuard.from_settings()
    decision = guard.check(
        "Partner with vets to run a stray dog vaccination drive.",
        "stray dogs attacked me on my way home",
    )
    assert decision.accepted


def test_guard_ignores_problems_without_triggers():
    guard = RelevanceGuard.from_settings()
    assert guard.check("Anything at all.", PROBLEM_TEXT).accepted


def test_compound_trigger_needs_both_terms():
    trigger = GuardTrigger.parse("stray+dog")
    assert trigger == GuardTrigger(keyword="stray", requires="dog")
    assert not trigger.matches("stray cattle on the highway")
    assert trigger.matches("stray dogs near the school")


def test_guard_triggers_are_configurable():
    guard = RelevanceGuard.from_settings(["pothole"])
    assert not guard.check("Plant trees.", "A pothole broke my scooter").accepted
    assert guard.check("Plant trees.", "stray dogs chased me").accepted


# =============================================================================
# Rate limiter
# =============================================================================


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_rate_limiter_rejects_after_limit_and_resets(db):
    clock = Clock(datetime(2026, 1, 10, 9, 0, 0))
    limiter = RateLimiter(db, clock=clock)

    results = [limiter.check("suggest:10.0.0.1", limit=10, window_seconds=60) for _ in range(11)]
    assert all(r.allowed for r in results[:10])
    assert results[9].remaining == 0
    assert not results[10].allowed
    assert results[10].reset_at == datetime(2026, 1, 10, 9, 1, 0)

    clock.now += timedelta(seconds=61)
    result = limiter.check("suggest:10.0.0.1", limit=10, window_seconds=60)
    assert result.allowed
    assert result.remaining == 9

    record = db.query(RateLimit).filter(RateLimit.key == "suggest:10.0.0.1").one()
    assert record.count == 1


def test_rate_limiter_keys_are_independent(db):
    limiter = RateLimiter(db)
    for _ in range(2):
        limiter.check("ai_help:a", limit=2, window_seconds=60)
    assert not limiter.check("ai_help:a", limit=2, window_seconds=60).allowed
    assert limiter.check("ai_help:b", limit=2, window_seconds=60).allowed


def test_rate_limiter_fails_open_on_storage_error():
    session = MagicMock()
    session.query.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
    result = RateLimiter(session).check("suggest:x", limit=1, window_seconds=60)
    assert result.allowed
    session.rollback.assert_called_once()
