"""
Background work that runs after a request has been answered.

Every unit of work is persisted as a BackgroundJob row before it is scheduled,
so failures stay visible to admins and can be retried. Jobs run on FastAPI's
BackgroundTasks with their own database session and act as the service account.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from coursepath.core import database
from coursepath.core.config import settings
from coursepath.crud import course_crud, job_crud, quiz_crud, user_crud
from coursepath.models.enums import JobType, JobStatus
from coursepath.models.job_model import BackgroundJob
from coursepath.models.user_model import User
from coursepath.schemas.course_schema import QuizQuestionCreate
from coursepath.services import ai_service

logger = logging.getLogger(__name__)


def enqueue_job(
    db: Session,
    background_tasks: BackgroundTasks,
    job_type: JobType,
    module_id: Optional[int],
    requested_by_id: Optional[int] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> BackgroundJob:
    job = job_crud.create_job(db, job_type, module_id, requested_by_id, payload)
    background_tasks.add_task(run_job, job.id)
    return job

def retry_job(db: Session, background_tasks: BackgroundTasks, job: BackgroundJob) -> BackgroundJob:
    job = job_crud.reset_for_retry(db, job)
    background_tasks.add_task(run_job, job.id)
    return job


# --- Handlers ---
# Each handler does its work with the given session and returns the ids of
# follow-up jobs it queued; the runner executes those next.

def index_transcript(db: Session, job: BackgroundJob, actor: User) -> List[int]:
    module = course_crud.get_module(db, job.module_id)
    if module is None:
        raise course_crud.NotFoundError(f"Module {job.module_id} no longer exists.")
    transcription = course_crud.get_module_transcription(db, module.id)
    if transcription is None:
        raise ValueError(f"Module {module.id} has no transcription to index.")

    texts = [segment.text for segment in transcription.segments]
    embeddings = ai_service.embed_texts(texts)
    if embeddings is None:
        logger.info(f"Embeddings unavailable; module {module.id} transcript stays keyword-searchable only")
        embeddings = [None] * len(texts)
    course_crud.save_transcription_embeddings(db, transcription, embeddings)

    if module.has_quiz or not settings.AUTO_GENERATE_QUIZZES:
        return []
    if not ai_service.is_configured():
        logger.info(f"Skipping automatic quiz generation for module {module.id}: AI service not configured")
        return []
    follow_up = job_crud.create_job(
        db,
        JobType.QUIZ_GENERATION,
        module.id,
        actor.id,
        {"num_questions": settings.QUIZ_GENERATION_QUESTION_COUNT, "force_regenerate": False},
    )
    return [follow_up.id]

def generate_quiz(db: Session, job: BackgroundJob, actor: User) -> List[int]:
    module = course_crud.get_module(db, job.module_id)
    if module is None:
        raise course_crud.NotFoundError(f"Module {job.module_id} no longer exists.")

    payload = job.payload or {}
    if module.has_quiz and not payload.get("force_regenerate"):
        logger.info(f"Module {module.id} already has a quiz; generation skipped")
        return []

    transcription = course_crud.get_module_transcription(db, module.id)
    if transcription is None or not transcription.text:
        raise ValueError(f"Module {module.id} has no transcription to generate questions from.")

    num_questions = int(payload.get("num_questions") or settings.QUIZ_GENERATION_QUESTION_COUNT)
    generated = ai_service.generate_quiz_questions_from_text(transcription.text, num_questions, topic=module.title)
    questions = [QuizQuestionCreate(**q) for q in generated]
    if not questions:
        raise RuntimeError("The AI service returned no usable questions.")

    quiz_crud.replace_quiz_questions(db, module, questions)
    logger.info(f"Generated {len(questions)} quiz questions for module {module.id} as {actor.firebase_uid}")
    return []

HANDLERS: Dict[JobType, Callable[[Session, BackgroundJob, User], List[int]]] = {
    JobType.TRANSCRIPT_INDEXING: index_transcript,
    JobType.QUIZ_GENERATION: generate_quiz,
}


# --- Runner ---
def run_job(job_id: int) -> None:
    """Executes a pending job, then any follow-up jobs it queued. Never raises."""
    db = database.SessionLocal()
    try:
        pending = [job_id]
        while pending:
            _run_one(db, pending.pop(0), pending)
    finally:
        db.close()

def _run_one(db: Session, job_id: int, pending: List[int]) -> None:
    job = job_crud.get_job(db, job_id)
    if job is None:
        logger.error(f"Job {job_id} vanished before it could run")
        return
    if job.status != JobStatus.PENDING:
        logger.warning(f"Job {job_id} is {job.status.value}, not pending; skipping")
        return

    try:
        actor = user_crud.get_or_create_service_account(db)
        db.commit()
        job = job_crud.mark_running(db, job)
        logger.info(f"Running job {job.id} ({job.job_type.value}) for module {job.module_id}, attempt {job.attempts}")
        pending.extend(HANDLERS[job.job_type](db, job, actor))
    except Exception as e:
        db.rollback()
        logger.error(f"Job {job_id} failed: {e}", exc_info=True)
        job = job_crud.get_job(db, job_id)
        if job is not None:
            job_crud.mark_finished(db, job, error=str(e) or e.__class__.__name__)
        return

    job_crud.mark_finished(db, job)
    logger.info(f"Job {job.id} ({job.job_type.value}) succeeded")
