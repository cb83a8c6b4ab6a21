from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import logging

from coursepath.core.database import get_db
from coursepath.core.dependencies import (
    get_current_active_user,
    get_current_admin_user,
    get_active_course_or_404,
    get_active_course_module_or_404,
    get_course_module_or_404,
)
from coursepath.models.enums import JobType
from coursepath.models.user_model import User
from coursepath.models.course_model import Course, CourseModule
from coursepath.schemas import (
    course_schema as course_schemas,
    quiz_submission_schema as quiz_sub_schemas,
    ai_schema,
    job_schema,
)
from coursepath.crud import quiz_crud, course_crud
from coursepath.services import ai_service, task_queue

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/courses/{course_id}/modules/{module_id}/quiz", tags=["Quizzes"])


@router.get("", response_model=List[course_schemas.QuizQuestionPublic])
def read_module_quiz(
    module: CourseModule = Depends(get_active_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    The module's quiz questions without their answers.
    """
    return quiz_crud.get_quiz_questions(db, module.id)


@router.post("/submit", response_model=quiz_sub_schemas.QuizSubmissionResultDisplay)
def submit_module_quiz(
    submission_in: quiz_sub_schemas.QuizSubmissionCreate,
    course: Course = Depends(get_active_course_or_404),
    module: CourseModule = Depends(get_active_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Grade the user's answers. Every attempt is recorded; a passing attempt
    completes the module and moves the enrollment to the next module.
    """
    try:
        return quiz_crud.submit_quiz(db, current_user, course, module, submission_in)
    except course_crud.NotFoundError as e:
        logger.warning(f"Quiz submission for module {module.id} rejected: {e}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/results", response_model=List[quiz_sub_schemas.QuizResultDisplay])
def read_my_quiz_results(
    module: CourseModule = Depends(get_active_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return quiz_crud.get_quiz_results(db, current_user.id, module.id)


@router.get("/questions", response_model=List[course_schemas.QuizQuestionDisplay])
def read_quiz_questions_with_answers(
    module: CourseModule = Depends(get_active_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Questions including the correct answers, for reviewing past attempts.
    Available to admins and to users who have already taken the quiz.
    """
    if not current_user.is_admin and not quiz_crud.has_attempted(db, current_user.id, module.id):
        logger.warning(f"User {current_user.email} requested answers for module {module.id} without an attempt")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Take the quiz before reviewing its answers.")
    return quiz_crud.get_quiz_questions(db, module.id)


@router.post("/questions", response_model=List[course_schemas.QuizQuestionDisplay], status_code=status.HTTP_201_CREATED)
def create_quiz_questions(
    questions_in: course_schemas.QuizQuestionsCreate,
    module: CourseModule = Depends(get_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Add questions to the module's quiz. (Admin only)
    """
    logger.info(f"Admin {current_user.email} adding {len(questions_in.questions)} questions to module {module.id}")
    return quiz_crud.create_quiz_questions(db, module, questions_in.questions)


@router.post("/generate", response_model=job_schema.BackgroundJobDisplay, status_code=status.HTTP_202_ACCEPTED)
def generate_quiz_questions(
    generation_in: ai_schema.QuizGenerationRequest,
    background_tasks: BackgroundTasks,
    module: CourseModule = Depends(get_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Queue AI generation of quiz questions from the module transcript. (Admin only)
    """
    if not ai_service.is_configured():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="AI service is not configured.")
    if not course_crud.get_module_transcription(db, module.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Upload a transcription for this module before generating a quiz.",
        )

    return task_queue.enqueue_job(
        db,
        background_tasks,
        JobType.QUIZ_GENERATION,
        module.id,
        current_user.id,
        generation_in.model_dump(),
    )
