"""Job queue claiming, retries and maintenance sweeps."""

from datetime import timedelta

import pytest

from api.models import AssessmentResult, Job
from api.models.base import utcnow
from api.services.response_store import AssessmentStore
from processor.queue_manager import QueueManager


@pytest.fixture
def queue(db):
    return QueueManager(db)


def job_row(db, job_id):
    db.expire_all()
    return db.get(Job, job_id)


def make_due(db, job_id):
    job = db.get(Job, job_id)
    job.scheduled_for = utcnow() - timedelta(seconds=1)
    db.commit()


def test_enqueue_and_claim(queue, db):
    job_id = queue.enqueue("record_analytics", payload={"assessment_id": 1, "question_number": 2})

    job = queue.claim_next()

    assert job["id"] == job_id
    assert job["job_type"] == "record_analytics"
    assert job["payload"] == {"assessment_id": 1, "question_number": 2}
    assert job["attempts"] == 1
    assert job_row(db, job_id).status == "running"
    assert queue.claim_next() is None


def test_claim_prefers_priority(queue):
    low = queue.enqueue("record_analytics")
    high = queue.enqueue("score_assessment", priority=5)

    assert queue.claim_next()["id"] == high
    assert queue.claim_next()["id"] == low


def test_claim_skips_future_jobs(queue):
    queue.enqueue("record_analytics", scheduled_for=utcnow() + timedelta(minutes=5))
    assert queue.claim_next() is None


def test_claims_jobs_written_by_the_api(queue, db, assessment, make_machine):
    make_machine(assessment).scoring.trigger(assessment.id)

    job = queue.claim_next()
    assert job["job_type"] == "score_assessment"
    assert job["payload"] == {"assessment_id": assessment.id}
    assert job["max_attempts"] == 3


def test_complete(queue, db):
    job_id = queue.enqueue("record_analytics")
    queue.claim_next()
    queue.complete(job_id)

    row = job_row(db, job_id)
    assert row.status == "completed"
    assert row.completed_at is not None


def test_fail_retries_with_backoff_then_dies(queue, db):
    job_id = queue.enqueue("score_assessment", max_attempts=2)

    queue.claim_next()
    before = utcnow()
    queue.fail(job_id, "model overloaded")

    row = job_row(db, job_id)
    assert row.status == "pending"
    assert row.last_error == "model overloaded"
    assert row.scheduled_for >= before + timedelta(seconds=queue.retry_base_delay)
    assert queue.claim_next() is None

    make_due(db, job_id)
    assert queue.claim_next()["attempts"] == 2
    queue.fail(job_id, "still overloaded")

    row = job_row(db, job_id)
    assert row.status == "dead"
    assert queue.get_status()["dead"] == 1



def test_single_attempt_jobs_die_on_first_failure(queue, db):
    job_id = queue.enqueue("record_analytics", max_attempts=1)
    queue.claim_next()
    queue.fail(job_id, "bad payload")
    assert job_row(db, job_id).status == "dead"


def test_recover_stuck_jobs(queue, db):
    job_id = queue.enqueue("score_assessment")
    queue.claim_next()
    job = db.get(Job, job_id)
    job.started_at = utcnow() - timedelta(minutes=45)
    db.commit()

    assert queue.recover_stuck_jobs(stuck_threshold_minutes=30) == 1
    assert job_row(db, job_id).status == "pending"


def test_clear_completed(queue, db):
    old = queue.enqueue("record_analytics")
    fresh = queue.enqueue("record_analytics")
    for job_id in (old, fresh):
        queue.claim_next()
        queue.complete(job_id)
    job = db.get(Job, old)
    job.completed_at = utcnow() - timedelta(hours=30)
    db.commit()

    assert queue.clear_completed(older_than_hours=24) == 1
    assert job_row(db, old) is None
    assert job_row(db, fresh) is not None


def _add_result(db, assessment_id):
    db.add(
        AssessmentResult(
            assessment_id=assessment_id,
            personal_ownership_score=50,
            impact_readiness_score=50,
            will_score=50,
            skill_score=50,
            quadrant="Q4",
            recommended_role="EC Member",
        )
    )
    db.commit()


def test_heal_stuck_assessments(queue, db, assessment):
    assessment.current_question = 5
    assessment.active_question = 5
    assessment.updated_at = utcnow() - timedelta(minutes=10)
    db.commit()
    _add_result(db, assessment.id)

    assert queue.heal_stuck_assessments(stuck_threshold_minutes=5) == 1

    db.expire_all()
    assert assessment.status == "completed"
    assert assessment.completed_at is not None


def test_heal_ignores_recent_or_unscored(queue, db, assessment, chapter):
    assessment.current_question = 5
    db.commit()
    _add_result(db, assessment.id)

    unscored = AssessmentStore(db).create_assessment(chapter, "Kavya", "kavya@example.com")
    unscored.current_question = 5
    unscored.updated_at = utcnow() - timedelta(minutes=10)
    db.commit()

    assert queue.heal_stuck_assessments(stuck_threshold_minutes=5) == 0


def test_recover_unscored_assessments(queue, db, assessment, chapter):
    AssessmentStore(db).mark_completed(assessment, utcnow() - timedelta(minutes=10))

    scored = AssessmentStore(db).create_assessment(chapter, "Kavya", "kavya@example.com")
    AssessmentStore(db).mark_completed(scored, utcnow() - timedelta(minutes=10))
    _add_result(db, scored.id)

    assert queue.recover_unscored_assessments(stuck_threshold_minutes=5) == 1
    # A pending scoring job now exists, so a second sweep adds nothing
    assert queue.recover_unscored_assessments(stuck_threshold_minutes=5) == 0

    job = queue.claim_next()
    assert job["job_type"] == "score_assessment"
    assert job["assessment_id"] == assessment.id
    assert job["payload"] == {"assessment_id": assessment.id}
