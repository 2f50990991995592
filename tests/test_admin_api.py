"""Chapter-scoped admin endpoints: auth, listing, detail, rescore and analytics."""

import pytest

from api.models import AdaptationAnalytics, AssessmentResult, Job
from api.models.base import dump_json, utcnow
from api.schemas.answers import TextAnswer
from api.services.question_adapter import AdaptedQuestion
from api.services.response_store import AssessmentStore


@pytest.fixture
def completed(db, chapter, verticals):
    store = AssessmentStore(db)
    assessment = store.create_assessment(chapter, "Ravi Shankar", "ravi@example.com")
    store.upsert_response(assessment.id, 2, TextAnswer(text="Plan"), question_text="Q2 text")
    store.mark_completed(assessment, utcnow())
    db.add(
        AssessmentResult(
            assessment_id=assessment.id,
            personal_ownership_score=72,
            impact_readiness_score=64,
            will_score=70,
            skill_score=61,
            quadrant="Q1",
            recommended_role="Chair / Co-Chair",
            vertical_matches=dump_json([3, 4, 7]),
            leadership_style="leader",
        )
    )
    db.commit()
    return assessment


@pytest.fixture
def in_progress(db, chapter, verticals):
    return AssessmentStore(db).create_assessment(chapter, "Meena Iyer", "meena@example.com")


@pytest.fixture
def foreign(db, other_chapter):
    return AssessmentStore(db).create_assessment(other_chapter, "Outsider", "out@example.com")


def test_admin_routes_require_token(client):
    response = client.get("/api/v1/assessments")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_invalid_token_is_rejected(client):
    response = client.get("/api/v1/assessments", headers={"Authorization": "Bearer nonsense"})
    assert response.status_code == 401


def test_plain_user_cannot_list(client, chapter, auth_headers):
    response = client.get("/api/v1/assessments", headers=auth_headers(["user"], chapter.id))
    assert response.status_code == 403


def test_list_is_scoped_to_chapter(client, chapter, completed, in_progress, foreign, auth_headers):
    response = client.get("/api/v1/assessments", headers=auth_headers(["em"], chapter.id))

    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["total"] == 2
    assert body["meta"]["perPage"] == 20
    assert {item["id"] for item in body["data"]} == {completed.id, in_progress.id}

    scored = next(item for item in body["data"] if item["id"] == completed.id)
    assert scored["quadrant"] == "Q1"
    assert scored["recommendedRole"] == "Chair / Co-Chair"


def test_list_filters_by_status(client, chapter, completed, in_progress, auth_headers):
    response = client.get(
        "/api/v1/assessments", params={"status": "completed"}, headers=auth_headers(["chair"], chapter.id)
    )
    assert [item["id"] for item in response.json()["data"]] == [completed.id]


def test_other_chapter_needs_super_admin(client, chapter, other_chapter, foreign, auth_headers):
    params = {"chapterId": other_chapter.id}

    denied = client.get("/api/v1/assessments", params=params, headers=auth_headers(["admin"], chapter.id))
    assert denied.status_code == 403

    allowed = client.get(
        "/api/v1/assessments", params=params, headers=auth_headers(["super_admin"], chapter.id)
    )
    assert allowed.status_code == 200
    assert [item["id"] for item in allowed.json()["data"]] == [foreign.id]


def test_detail(client, chapter, completed, auth_headers):
    response = client.get(f"/api/v1/assessments/{completed.id}", headers=auth_headers(["em"], chapter.id))

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["responses"][0]["questionNumber"] == 2
    assert body["responses"][0]["answer"] == {"kind": "text", "text": "Plan"}
    assert body["result"]["verticalMatches"] == [3, 4, 7]
    assert body["result"]["leadershipStyle"] == "leader"


def test_detail_shows_adapted_question_context(client, db, chapter, completed, auth_headers):
    adapted = AdaptedQuestion(scenario="Adapted Q2", context_summary="waste management issues")
    AssessmentStore(db).save_adaptation(completed.id, 2, adapted)
    db.commit()

    response = client.get(f"/api/v1/assessments/{completed.id}", headers=auth_headers(["em"], chapter.id))

    q2 = response.json()["responses"][0]
    assert q2["adaptedQuestionText"] == "Adapted Q2"
    assert q2["contextSummary"] == "waste management issues"


def test_detail_of_other_chapter_is_not_found(client, chapter, foreign, auth_headers):
    response = client.get(f"/api/v1/assessments/{foreign.id}", headers=auth_headers(["admin"], chapter.id))
    assert response.status_code == 404


def test_review_update_feeds_shortlist_filter(client, chapter, completed, in_progress, auth_headers):
    headers = auth_headers(["em"], chapter.id)

    response = client.patch(
        f"/api/v1/assessments/{completed.id}",
        json={"isShortlisted": True, "reviewStatus": "shortlisted", "adminNotes": "Strong Q2 plan"},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["isShortlisted"] is True
    assert body["reviewStatus"] == "shortlisted"
    assert body["adminNotes"] == "Strong Q2 plan"

    listed = client.get("/api/v1/assessments", params={"shortlisted": "true"}, headers=headers)
    assert [item["id"] for item in listed.json()["data"]] == [completed.id]


def test_review_update_changes_only_sent_fields(client, chapter, completed, auth_headers):
    headers = auth_headers(["em"], chapter.id)
    client.patch(f"/api/v1/assessments/{completed.id}", json={"adminNotes": "Call back"}, headers=headers)

    body = client.patch(
        f"/api/v1/assessments/{completed.id}", json={"reviewStatus": "reviewed"}, headers=headers
    ).json()

    assert body["reviewStatus"] == "reviewed"
    assert body["adminNotes"] == "Call back"
    assert body["isShortlisted"] is False


def test_review_update_rejects_unknown_status(client, chapter, completed, auth_headers):
    response = client.patch(
        f"/api/v1/assessments/{completed.id}",
        json={"reviewStatus": "hired"},
        headers=auth_headers(["em"], chapter.id),
    )
    assert response.status_code == 422


def test_review_update_of_other_chapter_is_not_found(client, chapter, foreign, auth_headers):
    response = client.patch(
        f"/api/v1/assessments/{foreign.id}",
        json={"isShortlisted": True},
        headers=auth_headers(["admin"], chapter.id),
    )
    assert response.status_code == 404


def test_plain_user_cannot_update_review(client, chapter, completed, auth_headers):
    response = client.patch(
        f"/api/v1/assessments/{completed.id}",
        json={"isShortlisted": True},
        headers=auth_headers(["user"], chapter.id),
    )
    assert response.status_code == 403


def test_rescore_requires_admin(client, chapter, completed, auth_headers):
    response = client.post(
        f"/api/v1/assessments/{completed.id}/rescore", headers=auth_headers(["em"], chapter.id)
    )
    assert response.status_code == 403


def test_rescore_queues_scoring(client, chapter, completed, auth_headers, session_factory):
    response = client.post(
        f"/api/v1/assessments/{completed.id}/rescore", headers=auth_headers(["admin"], chapter.id)
    )

    assert response.status_code == 202
    job_id = response.json()["jobId"]
    with session_factory() as session:
        job = session.get(Job, job_id)
        assert job.job_type == "score_assessment"
        assert job.assessment_id == completed.id


def test_rescore_in_progress_conflicts(client, chapter, in_progress, auth_headers):
    response = client.post(
        f"/api/v1/assessments/{in_progress.id}/rescore", headers=auth_headers(["admin"], chapter.id)
    )
    assert response.status_code == 409


def test_adaptation_analytics_summary(client, db, chapter, completed, in_progress, foreign, auth_headers):
    db.add_all(
        [
            AdaptationAnalytics(
                assessment_id=completed.id,
                question_number=2,
                was_adapted=True,
                adaptation_success=True,
                fallback_used=False,
                adaptation_time_ms=1200,
                ai_help_used=True,
                ai_help_accepted=True,
                response_completed=True,
                time_to_complete_seconds=300,
            ),
            AdaptationAnalytics(
                assessment_id=in_progress.id,
                question_number=2,
                was_adapted=False,
                adaptation_success=False,
                fallback_used=True,
                fallback_reason="timeout",
                adaptation_time_ms=2800,
            ),
            AdaptationAnalytics(
                assessment_id=in_progress.id,
                question_number=3,
                was_adapted=False,
                fallback_used=True,
                fallback_reason="precondition_missing",
            ),
            AdaptationAnalytics(
                assessment_id=in_progress.id,
                question_number=0,
                response_completed=False,
                adaptation_context=dump_json({"stage": "status_update"}),
            ),
            # Another chapter's record must not be counted
            AdaptationAnalytics(
                assessment_id=foreign.id,
                question_number=2,
                was_adapted=True,
                adaptation_success=True,
                fallback_used=False,
            ),
        ]
    )
    db.commit()

    response = client.get("/api/v1/analytics/adaptation", headers=auth_headers(["admin"], chapter.id))

    assert response.status_code == 200
    body = response.json()
    assert body["chapterId"] == chapter.id
    assert body["submissionFailures"] == 1

    q2, q3 = body["questions"]
    assert q2["questionNumber"] == 2
    assert q2["records"] == 2
    assert q2["adaptationAttempts"] == 2
    assert q2["adaptationSuccessRate"] == 0.5
    assert q2["fallbackRate"] == 0.5
    assert q2["avgAdaptationTimeMs"] == 2000.0
    assert q2["aiHelpUsed"] == 1
    assert q2["aiHelpAccepted"] == 1
    assert q2["completed"] == 1

    assert q3["adaptationAttempts"] == 0
    assert q3["adaptationSuccessRate"] is None
    assert q3["fallbackRate"] == 1.0


def test_analytics_requires_admin(client, chapter, auth_headers):
    response = client.get("/api/v1/analytics/adaptation", headers=auth_headers(["chair"], chapter.id))
    assert response.status_code == 403
