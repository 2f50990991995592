"""Shared fixtures: a throwaway SQLite database, a scripted model and an API client."""

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from api import models  # noqa: F401
from api.config.database import Base, build_engine, get_db
from api.endpoints.public_assessments import get_analytics_recorder, get_claude_client
from api.main import app
from api.models import Chapter, Vertical
from api.services.ai_help import AIHelpService
from api.services.analytics import AnalyticsRecorder
from api.services.assessment_state import AssessmentStateMachine
from api.services.question_adapter import QuestionAdapter
from api.services.rate_limit import RateLimiter
from api.services.rbac import RequestContext
from api.services.relevance_guard import RelevanceGuard
from api.services.response_store import AssessmentStore
from api.services.scoring import ScoringTrigger
from api.services.token import create_admin_token
from api.services.vertical_suggestion import VerticalSuggester


PROBLEM_TEXT = (
    "Every morning on my way to college I walk past heaps of garbage dumped next to the "
    "bus stop. Last monsoon the drain overflowed and the whole street smelled for weeks. "
    "I watched an elderly neighbour slip on the waste and realised nobody was going to "
    "fix this unless people like me started organising the ward."
)

STRAY_DOG_PROBLEM = (
    "Stray dogs attacked me near the school gate last winter, and since then I have seen "
    "three children bitten on the same road. Parents are scared to let kids walk alone, "
    "the municipal helpline never answers, and there is no vaccination drive in our area "
    "even though the number of dogs keeps growing every month."
)

INITIATIVE_TEXT = (
    "I would start a ward-level segregation drive with students from two colleges, train "
    "fifty volunteers, and run weekend awareness camps at every bus stop and market."
)

GOAL_TEXT = (
    "By 2026 I want every household in my ward segregating waste at source, with a "
    "volunteer network that can keep running without me and a monthly public scorecard."
)

ADAPTED_SCENARIO = (
    "You described being irritated by waste management issues near your bus stop. "
    "It's Saturday, 6 PM and the team behind your segregation drive needs 3-4 hours from you. "
    "With 6 months and ₹50,000, how would you reach 10,000+ people, and what would 2026 look like?"
)

# Marker in each step's system prompt -> step name recorded on the fake
STEP_MARKERS = (
    ("vertical focus areas", "suggest"),
    ("extracting concise summaries", "summary"),
    ("skills and domains", "domains"),
    ("adapting assessment questions", "scenario"),
    ("writing assistant", "ai_help"),
    ("leadership style option", "explain"),
)

DEFAULT_RESPONSES = {
    "suggest": "[1, 2, 3]",
    "summary": "waste management issues",
    "domains": '["public health", "volunteer management", "civic outreach"]',
    "scenario": ADAPTED_SCENARIO,
    "ai_help": (
        '{"suggestions": ['
        '{"title": "Ward drive", "content": "Start with one ward and recruit college volunteers."},'
        '{"title": "School clubs", "content": "Set up eco clubs in ten schools."},'
        '{"title": "Market pledge", "content": "Get vendors to pledge zero dumping."}]}'
    ),
    "explain": "Lead means taking charge of the replan. Do means finishing the work yourself.",
}


def step_of(messages: list[dict]) -> str:
    system = " ".join(m["content"] for m in messages if m["role"] == "system")
    for marker, step in STEP_MARKERS:
        if marker in system:
            return step
    raise AssertionError(f"Unrecognised prompt: {system[:80]}")


class FakeClaude:
    """Stands in for ClaudeClient; answers by pipeline step.

    A response may be a string, an exception instance to raise, or a callable
    taking the message list.
    """

    model = "fake-model"

    def __init__(self, delay: float = 0, **responses):
        self.responses = {**DEFAULT_RESPONSES, **responses}
        self.delay = delay
        self.calls: list[str] = []
        self.messages: list[list[dict]] = []

    async def complete(self, messages, temperature, max_tokens=None):
        step = step_of(messages)
        self.calls.append(step)
        self.messages.append(messages)
        if self.delay:
            await asyncio.sleep(self.delay)

        response = self.responses[step]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(messages)
        return response


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def chapter(db):
    chapter = Chapter(name="Yi Erode", slug="erode")
    db.add(chapter)
    db.commit()
    db.refresh(chapter)
    return chapter


@pytest.fixture
def other_chapter(db):
    chapter = Chapter(name="Yi Salem", slug="salem")
    db.add(chapter)
    db.commit()
    db.refresh(chapter)
    return chapter


@pytest.fixture
def verticals(db, chapter):
    names = [
        ("Masoom", "Child safety and protection"),
        ("Road Safety", "Safer roads and traffic awareness"),
        ("Climate Change", "Environment, waste and sustainability"),
        ("Health", "Public health and wellbeing"),
        ("Accessibility", "Inclusion for people with disabilities"),
        ("Entrepreneurship", "Supporting young founders"),
        ("Learning", "Education and skills"),
    ]
    rows = [
        Vertical(name=name, description=description, display_order=idx)
        for idx, (name, description) in enumerate(names, start=1)
    ]
    db.add_all(rows)
    db.commit()
    return [row.id for row in rows]


@pytest.fixture
def store(db):
    return AssessmentStore(db)


@pytest.fixture
def assessment(store, chapter, verticals):
    return store.create_assessment(chapter, "Asha Kumar", "asha@example.com")


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def fake_claude():
    return FakeClaude()


@pytest.fixture
def analytics(session_factory):
    return AnalyticsRecorder(session_factory)


@pytest.fixture
def make_machine(db, store, fake_claude, analytics):
    """Build a state machine for an assessment, optionally swapping collaborators."""

    def _make(assessment, claude=None, **overrides):
        claude = claude or fake_claude
        parts = dict(
            assessment=assessment,
            context=RequestContext(chapter_id=assessment.chapter_id, role="user"),
            store=store,
            adapter=QuestionAdapter(claude),
            suggester=VerticalSuggester(claude),
            ai_help=AIHelpService(claude, RelevanceGuard.from_settings()),
            analytics=analytics,
            scoring=ScoringTrigger(db),
            rate_limiter=RateLimiter(db),
        )
        parts.update(overrides)
        return AssessmentStateMachine(**parts)

    return _make


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def client(session_factory, fake_claude):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_claude_client] = lambda: fake_claude
    app.dependency_overrides[get_analytics_recorder] = lambda: AnalyticsRecorder(session_factory)

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Authorization headers for a token with the given roles and chapter."""

    def _headers(roles, chapter_id, user_id="user-1"):
        token = create_admin_token(user_id, f"{user_id}@example.com", roles, chapter_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers
