import re

import pytest

from coursepath.crud import progress_crud, quiz_crud
from coursepath.models import ModuleCompletion
from coursepath.models.quiz_result_model import QuizResult
from coursepath.schemas.quiz_submission_schema import QuizAnswer, QuizSubmissionCreate

from conftest import add_question


def _quiz_url(course, module, suffix=""):
    return f"/api/v1/courses/{course.id}/modules/{module.id}/quiz{suffix}"


def _answers(questions, wrong=0):
    """Answers every question, the first `wrong` of them incorrectly."""
    return [
        {"question_id": q.id, "selected_option_id": "B" if idx < wrong else q.correct_option_id}
        for idx, q in enumerate(questions)
    ]


# --- Grading ---

def test_grade_counts_against_all_questions(db, make_course):
    course = make_course(modules=1, questions={0: 5})
    questions = quiz_crud.get_quiz_questions(db, course.modules[0].id)

    outcome = quiz_crud.grade_submission(questions, [QuizAnswer(**a) for a in _answers(questions, wrong=1)])
    assert (outcome.correct, outcome.total) == (4, 5)
    assert outcome.score == 80
    assert outcome.passed is True

    partial = [QuizAnswer(question_id=questions[0].id, selected_option_id="A")]
    outcome = quiz_crud.grade_submission(questions, partial)
    assert outcome.correct == 1
    assert outcome.score == 20
    assert outcome.passed is False


def test_grade_ignores_unknown_and_repeated_answers(db, make_course):
    course = make_course(modules=1, questions={0: 2})
    first, second = quiz_crud.get_quiz_questions(db, course.modules[0].id)

    answers = [
        QuizAnswer(question_id=first.id, selected_option_id="A"),
        QuizAnswer(question_id=first.id, selected_option_id="A"),
        QuizAnswer(question_id=second.id, selected_option_id="C"),
        QuizAnswer(question_id=second.id, selected_option_id="A"),
        QuizAnswer(question_id=99999, selected_option_id="A"),
    ]
    outcome = quiz_crud.grade_submission([first, second], answers)
    assert outcome.correct == 1
    assert outcome.score == 50
    assert outcome.feedback == {first.id: True, second.id: False}


def test_grade_keeps_fractional_score(db, make_course):
    course = make_course(modules=1, questions={0: 3})
    questions = quiz_crud.get_quiz_questions(db, course.modules[0].id)

    outcome = quiz_crud.grade_submission(questions, [QuizAnswer(**a) for a in _answers(questions, wrong=1)])
    assert outcome.score == pytest.approx(200 / 3)


def test_grade_without_questions_raises():
    with pytest.raises(ValueError):
        quiz_crud.grade_submission([], [])


# --- Full learner flows ---

def test_passing_final_quiz_completes_course_and_certificate_is_issued(client, auth, db, learner, make_course):
    course = make_course(title="QA-101", modules=2, questions={1: 4})
    m1, m2 = course.modules
    questions = quiz_crud.get_quiz_questions(db, m2.id)
    auth.user_id = learner.id

    r = client.post(f"/api/v1/courses/{course.id}/enroll")
    assert r.status_code == 201
    assert r.json()["progress"] == 0

    r = client.post(f"/api/v1/courses/{course.id}/modules/{m1.id}/progress", json={"progress": 100})
    assert r.json()["progress"] == 50

    r = client.post(_quiz_url(course, m2, "/submit"), json={"answers": _answers(questions)})
    assert r.status_code == 200
    body = r.json()
    assert body["correct"] == 4 and body["total"] == 4
    assert body["score"] == 100
    assert body["passed"] is True
    assert body["course_progress"]["progress_percent"] == 100
    assert body["course_progress"]["all_completed"] is True

    r = client.get(f"/api/v1/user/courses/{course.id}/progress")
    assert r.json()["progress"] == 100
    assert r.json()["completed"] is True

    r = client.post("/api/v1/certificates", json={"user_id": learner.id, "course_id": course.id})
    assert r.status_code == 201
    certificate = r.json()
    assert re.fullmatch(r"CP-\d{8}-[0-9A-F]{10}", certificate["credential_id"])
    assert certificate["course_name"] == "QA-101"


def test_failing_final_quiz_blocks_certificate(client, auth, db, learner, make_course):
    course = make_course(title="QA-101", modules=2, questions={1: 4})
    m1, m2 = course.modules
    questions = quiz_crud.get_quiz_questions(db, m2.id)
    auth.user_id = learner.id

    client.post(f"/api/v1/courses/{course.id}/enroll")
    client.post(f"/api/v1/courses/{course.id}/modules/{m1.id}/progress", json={"progress": 100})

    r = client.post(_quiz_url(course, m2, "/submit"), json={"answers": _answers(questions, wrong=1)})
    assert r.status_code == 200
    body = r.json()
    assert body["score"] == 75
    assert body["passed"] is False
    assert body["course_progress"] is None
    assert progress_crud.get_module_completion(db, learner.id, m2.id) is None

    r = client.post("/api/v1/certificates", json={"user_id": learner.id, "course_id": course.id})
    assert r.status_code == 400
    assert r.json()["missing_modules"] == [m2.id]
    assert r.json()["completed"] == 1
    assert r.json()["total"] == 2


def test_passing_quiz_moves_to_next_module(client, auth, db, learner, make_course):
    course = make_course(modules=3, questions={0: 2})
    m1, m2, _m3 = course.modules
    auth.user_id = learner.id
    client.post(f"/api/v1/courses/{course.id}/enroll")

    r = client.post(_quiz_url(course, m1, "/submit"), json={"answers": _answers(quiz_crud.get_quiz_questions(db, m1.id))})
    assert r.json()["passed"] is True

    db.expire_all()
    enrollment = progress_crud.get_enrollment(db, learner.id, course.id)
    assert enrollment.current_module_id == m2.id
    assert enrollment.current_module_order == 2
    assert enrollment.progress == 33


def test_failed_retry_keeps_earlier_pass(client, auth, db, learner, make_course):
    course = make_course(modules=1, questions={0: 2})
    module = course.modules[0]
    questions = quiz_crud.get_quiz_questions(db, module.id)
    auth.user_id = learner.id
    client.post(f"/api/v1/courses/{course.id}/enroll")

    assert client.post(_quiz_url(course, module, "/submit"), json={"answers": _answers(questions)}).json()["passed"]
    r = client.post(_quiz_url(course, module, "/submit"), json={"answers": _answers(questions, wrong=2)})
    assert r.json()["passed"] is False

    db.expire_all()
    assert progress_crud.get_module_completion(db, learner.id, module.id).completed is True
    assert progress_crud.get_enrollment(db, learner.id, course.id).completed is True

    results = client.get(_quiz_url(course, module, "/results")).json()
    assert [res["passed"] for res in results] == [False, True]
    assert db.query(QuizResult).count() == 2


def test_result_keeps_snapshot_of_questions(client, auth, db, learner, make_course):
    course = make_course(modules=1, questions={0: 1})
    module = course.modules[0]
    question = quiz_crud.get_quiz_questions(db, module.id)[0]
    auth.user_id = learner.id
    client.post(_quiz_url(course, module, "/submit"), json={"answers": _answers([question])})

    question.text = "Reworded after the attempt"
    db.commit()

    results = client.get(_quiz_url(course, module, "/results")).json()
    assert results[0]["questions"][0]["text"] == "Question 1 of Module 1"
    assert results[0]["questions"][0]["correct_option_id"] == "A"


# --- Errors and visibility ---

def test_submit_without_questions_is_not_found(client, auth, learner, make_course):
    course = make_course(modules=1)
    auth.user_id = learner.id

    r = client.post(_quiz_url(course, course.modules[0], "/submit"), json={"answers": []})
    assert r.status_code == 404
    assert r.json()["detail"] == "No quiz questions found for this module"


def test_submit_to_module_of_other_course_is_not_found(client, auth, learner, make_course):
    course = make_course(title="First course", modules=1, questions={0: 1})
    other = make_course(title="Second course", modules=1, questions={0: 1})
    auth.user_id = learner.id

    r = client.post(_quiz_url(course, other.modules[0], "/submit"), json={"answers": []})
    assert r.status_code == 404


def test_public_quiz_hides_answers(client, auth, learner, make_course):
    course = make_course(modules=1, questions={0: 2})
    auth.user_id = learner.id

    r = client.get(_quiz_url(course, course.modules[0]))
    assert r.status_code == 200
    assert len(r.json()) == 2
    assert all("correct_option_id" not in q for q in r.json())
    assert [opt["id"] for opt in r.json()[0]["options"]] == ["A", "B", "C"]


def test_answers_visible_only_after_an_attempt(client, auth, learner, admin, make_course):
    course = make_course(modules=1, questions={0: 1})
    module = course.modules[0]
    auth.user_id = learner.id

    assert client.get(_quiz_url(course, module, "/questions")).status_code == 403

    client.post(_quiz_url(course, module, "/submit"), json={"answers": []})
    r = client.get(_quiz_url(course, module, "/questions"))
    assert r.status_code == 200
    assert r.json()[0]["correct_option_id"] == "A"

    auth.user_id = admin.id
    assert client.get(_quiz_url(course, module, "/questions")).status_code == 200


def test_admin_adds_questions(client, auth, db, admin, make_course):
    course = make_course(modules=1)
    module = course.modules[0]
    add_question(db, module, "Existing question")
    auth.user_id = admin.id

    payload = {"questions": [{
        "text": "Which option is right?",
        "options": [{"id": "x", "text": "This one"}, {"id": "y", "text": "That one"}],
        "correct_option_id": "x",
    }]}
    r = client.post(_quiz_url(course, module, "/questions"), json=payload)
    assert r.status_code == 201
    assert r.json()[0]["question_order"] == 1

    db.expire_all()
    assert len(quiz_crud.get_quiz_questions(db, module.id)) == 2
    assert module.has_quiz is True


def test_question_with_unknown_correct_option_is_rejected(client, auth, admin, make_course):
    course = make_course(modules=1)
    auth.user_id = admin.id

    payload = {"questions": [{
        "text": "Which option is right?",
        "options": [{"id": "A", "text": "One"}, {"id": "B", "text": "Two"}],
        "correct_option_id": "Z",
    }]}
    r = client.post(_quiz_url(course, course.modules[0], "/questions"), json=payload)
    assert r.status_code == 400
    assert r.json()["detail"] == "Validation error"


def test_learner_cannot_add_questions(client, auth, learner, make_course):
    course = make_course(modules=1)
    auth.user_id = learner.id

    payload = {"questions": [{
        "text": "Which option is right?",
        "options": [{"id": "A", "text": "One"}, {"id": "B", "text": "Two"}],
        "correct_option_id": "A",
    }]}
    assert client.post(_quiz_url(course, course.modules[0], "/questions"), json=payload).status_code == 403


def test_failure_while_recording_a_pass_leaves_nothing_behind(db, learner, make_course, monkeypatch):
    course = make_course(modules=2, questions={0: 2})
    module = course.modules[0]
    progress_crud.enroll_user(db, learner.id, course)
    questions = quiz_crud.get_quiz_questions(db, module.id)

    def _broken_aggregation(*args, **kwargs):
        raise RuntimeError("aggregation failed")

    monkeypatch.setattr(progress_crud, "compute_course_progress", _broken_aggregation)
    submission = QuizSubmissionCreate(answers=[QuizAnswer(**a) for a in _answers(questions)])

    with pytest.raises(RuntimeError):
        quiz_crud.submit_quiz(db, learner, course, module, submission)

    db.expire_all()
    assert db.query(QuizResult).count() == 0
    assert db.query(ModuleCompletion).count() == 0
    enrollment = progress_crud.get_enrollment(db, learner.id, course.id)
    assert enrollment.progress == 0
    assert enrollment.current_module_id == module.id
