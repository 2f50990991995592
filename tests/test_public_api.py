"""Candidate-facing HTTP endpoints."""

from api.integrations.claude import ClaudeError
from api.models import Job

from conftest import GOAL_TEXT, INITIATIVE_TEXT, PROBLEM_TEXT, STRAY_DOG_PROBLEM

BASE = "/api/v1/public/assessments"


def start(client, slug="erode"):
    return client.post(
        BASE,
        json={"chapterSlug": slug, "candidateName": "Asha Kumar", "candidateEmail": "asha@example.com"},
    )


def q1_answer(priorities=(3, 4, 7), text=PROBLEM_TEXT):
    return {"kind": "ranked_categories", "problemText": text, "priorities": list(priorities)}


def text_answer(text):
    return {"kind": "text", "text": text}


def complete_q1(client, token, text=PROBLEM_TEXT):
    client.put(f"{BASE}/{token}/responses/1", json={"answer": q1_answer(priorities=(), text=text)})
    client.post(f"{BASE}/{token}/analyze", json={})
    return client.post(f"{BASE}/{token}/next", json={"answer": q1_answer(text=text)})


def test_start_assessment(client, chapter, verticals):
    response = start(client)

    assert response.status_code == 201
    body = response.json()
    assert len(body["token"]) >= 32
    assert body["chapterName"] == "Yi Erode"
    assert body["status"] == "in_progress"
    assert body["activeQuestion"] == 1
    assert body["question"]["questionType"] == "ranked_categories"
    assert body["question"]["minChars"] == 200
    assert "Yi Erode" in body["question"]["rankingInstructions"]
    assert [v["id"] for v in body["verticals"]] == verticals


def test_start_unknown_chapter(client, chapter):
    response = start(client, slug="nowhere")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_start_rejects_bad_email(client, chapter):
    response = client.post(
        BASE, json={"chapterSlug": "erode", "candidateName": "Asha", "candidateEmail": "not-an-email"}
    )
    assert response.status_code == 422


def test_unknown_token(client):
    response = client.get(f"{BASE}/does-not-exist")
    assert response.status_code == 404


def test_full_flow(client, chapter, verticals, fake_claude, session_factory):
    token = start(client).json()["token"]

    saved = client.put(f"{BASE}/{token}/responses/1", json={"answer": q1_answer(priorities=())})
    assert saved.status_code == 200
    assert saved.json()["answer"]["problemText"] == PROBLEM_TEXT

    suggestions = client.post(f"{BASE}/{token}/analyze", json={})
    assert suggestions.status_code == 200
    assert suggestions.json()["verticalIds"] == [1, 2, 3]
    assert suggestions.json()["fallback"] is False

    view = client.post(f"{BASE}/{token}/next", json={"answer": q1_answer()}).json()
    assert view["activeQuestion"] == 2
    assert view["question"]["isAdapted"] is True
    assert "10,000+ people" in view["question"]["scenario"]

    view = client.post(f"{BASE}/{token}/next", json={"answer": text_answer(INITIATIVE_TEXT)}).json()
    assert view["activeQuestion"] == 3
    view = client.post(f"{BASE}/{token}/next", json={"answer": text_answer("I'll come right away.")}).json()
    assert view["activeQuestion"] == 4
    view = client.post(f"{BASE}/{token}/next", json={"answer": text_answer(GOAL_TEXT)}).json()
    assert view["activeQuestion"] == 5
    assert [o["value"] for o in view["question"]["options"]] == ["leader", "doer", "learning", "strategic"]

    submitted = client.post(
        f"{BASE}/{token}/submit", json={"answer": {"kind": "single_choice", "choice": "leader"}}
    )
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "completed"
    assert submitted.json()["notice"] is None

    gone = client.get(f"{BASE}/{token}")
    assert gone.status_code == 410
    assert gone.json()["error"]["code"] == "GONE"

    again = client.post(f"{BASE}/{token}/next", json={})
    assert again.status_code == 410

    with session_factory() as session:
        assert session.query(Job).filter(Job.job_type == "score_assessment").count() == 1


def test_validation_error_body(client, chapter, verticals):
    token = start(client).json()["token"]
    response = client.post(f"{BASE}/{token}/next", json={"answer": q1_answer(text="x" * 150)})

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["message"] == "Part A requires at least 200 characters"
    assert error["details"]["questionNumber"] == 1


def test_previous_on_first_question_conflicts(client, chapter, verticals):
    token = start(client).json()["token"]
    response = client.post(f"{BASE}/{token}/previous", json={})
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_TRANSITION"


def test_analyze_is_rate_limited_per_ip(client, chapter, verticals):
    token = start(client).json()["token"]
    headers = {"X-Forwarded-For": "203.0.113.7"}

    for _ in range(10):
        assert client.post(f"{BASE}/{token}/analyze", json={"problemText": PROBLEM_TEXT}, headers=headers).status_code == 200

    limited = client.post(f"{BASE}/{token}/analyze", json={"problemText": PROBLEM_TEXT}, headers=headers)
    assert limited.status_code == 429
    assert limited.json()["error"]["code"] == "RATE_LIMITED"
    assert limited.json()["error"]["details"]["resetAt"]

    other_ip = client.post(
        f"{BASE}/{token}/analyze", json={"problemText": PROBLEM_TEXT}, headers={"X-Forwarded-For": "198.51.100.2"}
    )
    assert other_ip.status_code == 200


def test_analyze_falls_back_when_model_fails(client, chapter, verticals, fake_claude):
    fake_claude.responses["suggest"] = ClaudeError("down")
    token = start(client).json()["token"]

    body = client.post(f"{BASE}/{token}/analyze", json={"problemText": PROBLEM_TEXT}).json()

    assert body["fallback"] is True
    assert body["verticalIds"] == verticals[:5]


def test_ai_help_returns_suggestions(client, chapter, verticals):
    token = start(client).json()["token"]
    complete_q1(client, token)

    response = client.post(f"{BASE}/{token}/ai-help", json={"currentText": ""})

    assert response.status_code == 200
    body = response.json()
    assert body["questionNumber"] == 2
    assert body["suggestion"] == body["suggestions"][0]["content"]
    assert len(body["suggestions"]) == 3


def test_ai_help_relevance_rejection(client, chapter, verticals):
    token = start(client).json()["token"]
    complete_q1(client, token, text=STRAY_DOG_PROBLEM)

    response = client.post(f"{BASE}/{token}/ai-help", json={})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "RELEVANCE_REJECTED"


def test_ai_help_unavailable(client, chapter, verticals, fake_claude):
    fake_claude.responses["ai_help"] = ClaudeError("down")
    token = start(client).json()["token"]

    response = client.post(f"{BASE}/{token}/ai-help", json={"currentText": PROBLEM_TEXT})

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "AI_HELP_FAILED"


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"
