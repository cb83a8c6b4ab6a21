from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import logging

from coursepath.core.config import settings
from coursepath.models.user_model import User
from coursepath.models.course_model import Course, CourseModule, QuizQuestion
from coursepath.models.quiz_result_model import QuizResult
from coursepath.schemas import course_schema, quiz_submission_schema
from coursepath.schemas.user_progress_schema import CourseProgressSummaryDisplay
from coursepath.crud.course_crud import NotFoundError, get_next_module
from coursepath.crud import progress_crud
from coursepath.services import email_service

logger = logging.getLogger(__name__)


@dataclass
class GradeOutcome:
    correct: int
    total: int
    score: float
    passed: bool
    feedback: Dict[int, bool] = field(default_factory=dict)


# --- Quiz Question CRUD ---
def get_quiz_questions(db: Session, module_id: int) -> List[QuizQuestion]:
    logger.debug(f"Fetching quiz questions for module_id {module_id}")
    return (
        db.query(QuizQuestion)
        .filter(QuizQuestion.module_id == module_id)
        .order_by(QuizQuestion.question_order, QuizQuestion.id)
        .all()
    )

def _build_questions(module: CourseModule, questions_in: Iterable[course_schema.QuizQuestionCreate], start_order: int) -> List[QuizQuestion]:
    db_questions = []
    for idx, question_in in enumerate(questions_in):
        db_questions.append(QuizQuestion(
            module_id=module.id,
            text=question_in.text,
            options=[opt.model_dump() for opt in question_in.options],
            correct_option_id=question_in.correct_option_id,
            question_order=question_in.question_order if question_in.question_order is not None else start_order + idx,
        ))
    return db_questions

def create_quiz_questions(
    db: Session, module: CourseModule, questions_in: List[course_schema.QuizQuestionCreate]
) -> List[QuizQuestion]:
    """Appends questions to the module's quiz and flags the module as having one."""
    start_order = len(get_quiz_questions(db, module.id))
    db_questions = _build_questions(module, questions_in, start_order)
    try:
        db.add_all(db_questions)
        module.has_quiz = True
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating quiz questions for module {module.id}: {e}", exc_info=True)
        raise
    for q in db_questions:
        db.refresh(q)
    logger.info(f"{len(db_questions)} quiz questions added to module ID {module.id}.")
    return db_questions

def replace_quiz_questions(
    db: Session, module: CourseModule, questions_in: List[course_schema.QuizQuestionCreate]
) -> List[QuizQuestion]:
    """Swaps the whole question set in one transaction. Past results keep their own snapshot."""
    db_questions = _build_questions(module, questions_in, 0)
    try:
        db.query(QuizQuestion).filter(QuizQuestion.module_id == module.id).delete(synchronize_session=False)
        db.add_all(db_questions)
        module.has_quiz = bool(db_questions)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error replacing quiz questions for module {module.id}: {e}", exc_info=True)
        raise
    db.expire(module, ["quiz_questions"])
    for q in db_questions:
        db.refresh(q)
    logger.info(f"Quiz of module ID {module.id} replaced with {len(db_questions)} questions.")
    return db_questions

# --- Grading ---
def grade_submission(questions: List[QuizQuestion], answers: List[quiz_submission_schema.QuizAnswer]) -> GradeOutcome:
    """
    Grades answers against the module's questions.

    Answers to questions outside the set are ignored, and only the first answer to a
    question counts. Unanswered questions count as wrong, so the score is always
    relative to the full question set.
    """
    total = len(questions)
    if total == 0:
        raise ValueError("Cannot grade a quiz without questions.")

    correct_options_map = {q.id: q.correct_option_id for q in questions}
    feedback: Dict[int, bool] = {}
    for answer in answers:
        if answer.question_id not in correct_options_map:
            logger.debug(f"Ignoring answer for unknown question_id {answer.question_id}")
            continue
        if answer.question_id in feedback:
            continue
        feedback[answer.question_id] = (
            answer.selected_option_id is not None
            and answer.selected_option_id == correct_options_map[answer.question_id]
        )

    correct = sum(1 for ok in feedback.values() if ok)
    score = 100 * correct / total
    return GradeOutcome(
        correct=correct,
        total=total,
        score=score,
        passed=score >= settings.PASSING_SCORE,
        feedback=feedback,
    )

def _question_snapshot(q: QuizQuestion) -> Dict:
    return {
        "id": q.id,
        "text": q.text,
        "options": list(q.options or []),
        "correct_option_id": q.correct_option_id,
    }

def submit_quiz(
    db: Session,
    user: User,
    course: Course,
    module: CourseModule,
    submission_in: quiz_submission_schema.QuizSubmissionCreate,
) -> quiz_submission_schema.QuizSubmissionResultDisplay:
    """
    Grades a submission and records the attempt.

    On a pass the module is completed in the ledger, the course is re-aggregated
    and the enrollment moves on to the next module. A failed attempt leaves any
    earlier completion in place. Everything commits in one transaction.
    """
    logger.info(f"Processing quiz submission for module_id {module.id} by user_id {user.id}")
    if module.course_id != course.id:
        raise NotFoundError(f"Module {module.id} not found in course {course.id}.")

    questions = get_quiz_questions(db, module.id)
    if not questions:
        raise NotFoundError("No quiz questions found for this module")

    outcome = grade_submission(questions, submission_in.answers)
    summary: Optional[progress_crud.CourseProgressSummary] = None

    try:
        quiz_result = QuizResult(
            user_id=user.id,
            module_id=module.id,
            score=outcome.score,
            passed=outcome.passed,
            correct_count=outcome.correct,
            total_questions=outcome.total,
            time_spent_seconds=submission_in.time_spent_seconds,
            questions=[_question_snapshot(q) for q in questions],
            answers=[a.model_dump() for a in submission_in.answers],
            completed_at=datetime.now(timezone.utc),
        )
        db.add(quiz_result)

        if outcome.passed:
            progress_crud.set_module_completion(db, user.id, module.id, True)
            enrollment = progress_crud.get_enrollment(db, user.id, course.id, for_update=True)
            summary = progress_crud.compute_course_progress(db, user.id, course.id)
            if enrollment:
                progress_crud.apply_summary(enrollment, summary)
                next_module = get_next_module(db, module)
                if next_module:
                    enrollment.current_module_id = next_module.id
                    enrollment.current_module_order = next_module.module_order

        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error recording quiz submission for user {user.id}, module {module.id}: {e}", exc_info=True)
        raise

    db.refresh(quiz_result)
    logger.info(
        f"Quiz for module {module.id} submitted by user {user.id}. "
        f"Score: {outcome.correct}/{outcome.total} ({outcome.score:.1f}%), passed: {outcome.passed}"
    )

    email_service.send_quiz_result_email(user, course, module, outcome.score, outcome.passed)

    return quiz_submission_schema.QuizSubmissionResultDisplay(
        quiz_result_id=quiz_result.id,
        module_id=module.id,
        correct=outcome.correct,
        total=outcome.total,
        score=outcome.score,
        passed=outcome.passed,
        feedback=outcome.feedback,
        course_progress=CourseProgressSummaryDisplay(**asdict(summary)) if summary else None,
    )

def get_quiz_results(db: Session, user_id: int, module_id: int) -> List[QuizResult]:
    """All attempts of a user at a module, newest first."""
    logger.debug(f"Fetching quiz results for user_id {user_id}, module_id {module_id}")
    return (
        db.query(QuizResult)
        .filter(QuizResult.user_id == user_id, QuizResult.module_id == module_id)
        .order_by(QuizResult.completed_at.desc(), QuizResult.id.desc())
        .all()
    )

def has_attempted(db: Session, user_id: int, module_id: int) -> bool:
    return db.query(QuizResult.id).filter(
        QuizResult.user_id == user_id, QuizResult.module_id == module_id
    ).first() is not None
