import pytest

from coursepath.core.config import settings
from coursepath.crud import course_crud, job_crud, quiz_crud
from coursepath.models.enums import JobStatus, JobType, UserRole
from coursepath.models.user_model import User
from coursepath.services import ai_service, task_queue

TRANSCRIPT = {
    "video_id": "abc123",
    "segments": [
        {"text": "Unit tests check one function in isolation.", "start_time": 0, "end_time": 4.5},
        {"text": "Integration tests exercise several parts together.", "start_time": 4.5, "end_time": 9},
    ],
}

GENERATED = [
    {
        "text": f"Generated question {n}",
        "options": [{"id": "A", "text": "Right"}, {"id": "B", "text": "Wrong"}],
        "correct_option_id": "A",
    }
    for n in range(1, 4)
]


def _transcription_url(course, module):
    return f"/api/v1/courses/{course.id}/modules/{module.id}/transcription"


@pytest.fixture()
def ai_enabled(monkeypatch):
    """Pretends an OpenAI key is configured; segment i embeds as [i, 1, 1, ...]."""
    dims = settings.EMBEDDING_DIMENSIONS
    monkeypatch.setattr(ai_service, "client", object())
    monkeypatch.setattr(ai_service, "embed_texts", lambda texts: [[float(i)] + [1.0] * (dims - 1) for i, _ in enumerate(texts)])
    monkeypatch.setattr(ai_service, "generate_quiz_questions_from_text", lambda text, num, topic=None: GENERATED[:num])


def test_transcript_upload_is_indexed_without_ai(client, auth, db, admin, learner, make_course):
    course = make_course(modules=1)
    module = course.modules[0]
    auth.user_id = admin.id

    r = client.put(_transcription_url(course, module), json=TRANSCRIPT)
    assert r.status_code == 200
    assert r.json()["segment_count"] == 2
    assert r.json()["text"].startswith("Unit tests check")

    jobs = client.get("/api/v1/admin/jobs").json()
    assert len(jobs) == 1
    assert jobs[0]["job_type"] == "transcript_indexing"
    assert jobs[0]["status"] == "succeeded"
    assert jobs[0]["attempts"] == 1

    db.expire_all()
    transcription = course_crud.get_module_transcription(db, module.id)
    assert transcription.indexed_at is not None
    assert all(segment.embedding is None for segment in transcription.segments)
    assert module.has_quiz is False

    service = db.query(User).filter(User.role == UserRole.SERVICE.value).one()
    assert service.firebase_uid == "coursepath-service"

    auth.user_id = learner.id
    assert client.get(_transcription_url(course, module)).status_code == 200


def test_indexing_chains_quiz_generation(client, auth, db, admin, make_course, ai_enabled):
    course = make_course(modules=1)
    module = course.modules[0]
    auth.user_id = admin.id

    client.put(_transcription_url(course, module), json=TRANSCRIPT)

    jobs = client.get("/api/v1/admin/jobs").json()
    assert [(j["job_type"], j["status"]) for j in jobs] == [
        ("quiz_generation", "succeeded"),
        ("transcript_indexing", "succeeded"),
    ]

    db.expire_all()
    questions = quiz_crud.get_quiz_questions(db, module.id)
    assert [q.text for q in questions] == [g["text"] for g in GENERATED]
    assert course_crud.get_module(db, module.id).has_quiz is True
    transcription = course_crud.get_module_transcription(db, module.id)
    embedding = transcription.segments[1].embedding
    assert len(embedding) == settings.EMBEDDING_DIMENSIONS
    assert [float(v) for v in embedding[:2]] == [1.0, 1.0]
    assert transcription.segments[1].segment_key == f"{module.id}-1"


def test_indexing_does_not_replace_existing_quiz(client, auth, db, admin, make_course, ai_enabled):
    course = make_course(modules=1, questions={0: 1})
    module = course.modules[0]
    auth.user_id = admin.id

    client.put(_transcription_url(course, module), json=TRANSCRIPT)

    jobs = client.get("/api/v1/admin/jobs", params={"job_type": "quiz_generation"}).json()
    assert jobs == []
    assert [q.text for q in quiz_crud.get_quiz_questions(db, module.id)] == ["Question 1 of Module 1"]


def test_generate_endpoint_needs_ai_and_transcript(client, auth, admin, make_course, monkeypatch):
    course = make_course(modules=1)
    module = course.modules[0]
    auth.user_id = admin.id
    url = f"/api/v1/courses/{course.id}/modules/{module.id}/quiz/generate"

    assert client.post(url, json={}).status_code == 503

    monkeypatch.setattr(ai_service, "client", object())
    assert client.post(url, json={}).status_code == 400


def test_forced_regeneration_replaces_questions(client, auth, db, admin, make_course, ai_enabled):
    course = make_course(modules=1, questions={0: 4})
    module = course.modules[0]
    auth.user_id = admin.id
    client.put(_transcription_url(course, module), json=TRANSCRIPT)

    r = client.post(
        f"/api/v1/courses/{course.id}/modules/{module.id}/quiz/generate",
        json={"num_questions": 2, "force_regenerate": True},
    )
    assert r.status_code == 202
    assert r.json()["job_type"] == "quiz_generation"

    db.expire_all()
    assert job_crud.get_job(db, r.json()["id"]).status == JobStatus.SUCCEEDED
    assert [q.text for q in quiz_crud.get_quiz_questions(db, module.id)] == ["Generated question 1", "Generated question 2"]


def test_failed_job_is_visible_and_retryable(client, auth, db, admin, make_course, ai_enabled, monkeypatch):
    course = make_course(modules=1)
    module = course.modules[0]

    def _unavailable(text, num, topic=None):
        raise ai_service.AIServiceUnavailable("The AI service could not generate questions.")

    monkeypatch.setattr(ai_service, "generate_quiz_questions_from_text", _unavailable)
    auth.user_id = admin.id
    client.put(_transcription_url(course, module), json=TRANSCRIPT)

    failed = client.get("/api/v1/admin/jobs", params={"status": "failed"}).json()
    assert len(failed) == 1
    assert failed[0]["job_type"] == "quiz_generation"
    assert failed[0]["error"] == "The AI service could not generate questions."
    assert module.has_quiz is False

    monkeypatch.setattr(ai_service, "generate_quiz_questions_from_text", lambda text, num, topic=None: GENERATED[:num])
    r = client.post(f"/api/v1/admin/jobs/{failed[0]['id']}/retry")
    assert r.status_code == 202

    db.expire_all()
    job = job_crud.get_job(db, failed[0]["id"])
    assert job.status == JobStatus.SUCCEEDED
    assert job.attempts == 2
    assert job.error is None
    assert len(quiz_crud.get_quiz_questions(db, module.id)) == 3

    assert client.post(f"/api/v1/admin/jobs/{job.id}/retry").status_code == 409


def test_run_job_records_missing_transcription(db, admin, make_course):
    course = make_course(modules=1)
    job = job_crud.create_job(db, JobType.TRANSCRIPT_INDEXING, course.modules[0].id, admin.id)

    task_queue.run_job(job.id)

    db.expire_all()
    job = job_crud.get_job(db, job.id)
    assert job.status == JobStatus.FAILED
    assert "no transcription" in job.error


def test_jobs_are_admin_only(client, auth, learner):
    auth.user_id = learner.id
    assert client.get("/api/v1/admin/jobs").status_code == 403
