from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging

from coursepath.core.config import settings
from coursepath.models.course_model import Course, CourseModule
from coursepath.models.user_progress_model import ModuleCompletion, UserCourseProgress
from coursepath.crud.course_crud import get_modules_for_course

logger = logging.getLogger(__name__)


@dataclass
class CourseProgressSummary:
    total_modules: int
    completed_count: int
    progress_percent: int
    all_completed: bool
    completed_module_ids: List[int] = field(default_factory=list)
    missing_module_ids: List[int] = field(default_factory=list)


# --- Completion Ledger ---
def get_module_completion(db: Session, user_id: int, module_id: int) -> Optional[ModuleCompletion]:
    logger.debug(f"Fetching completion for user_id {user_id}, module_id {module_id}")
    return db.query(ModuleCompletion).filter(
        ModuleCompletion.user_id == user_id,
        ModuleCompletion.module_id == module_id,
    ).first()

def set_module_completion(db: Session, user_id: int, module_id: int, completed: bool) -> ModuleCompletion:
    """
    Creates or updates the (user, module) completion row.

    Marking complete stamps completed_at unless the row was already complete.
    Marking incomplete clears completed_at. Only flushes; the caller commits.
    """
    completion = get_module_completion(db, user_id, module_id)
    if completion is None:
        completion = ModuleCompletion(user_id=user_id, module_id=module_id, completed=False)
        db.add(completion)

    if completed and not completion.completed:
        completion.completed = True
        completion.completed_at = datetime.now(timezone.utc)
        logger.info(f"Module {module_id} marked complete for user {user_id}")
    elif not completed and completion.completed:
        completion.completed = False
        completion.completed_at = None
        logger.info(f"Module {module_id} completion cleared for user {user_id}")

    db.flush()
    return completion

def get_completed_modules(db: Session, user_id: int, course_id: int) -> List[ModuleCompletion]:
    """Completed ledger rows of the user whose module belongs to the course."""
    return (
        db.query(ModuleCompletion)
        .join(CourseModule, CourseModule.id == ModuleCompletion.module_id)
        .filter(
            ModuleCompletion.user_id == user_id,
            ModuleCompletion.completed.is_(True),
            CourseModule.course_id == course_id,
        )
        .all()
    )

# --- Progress Aggregator ---
def compute_course_progress(db: Session, user_id: int, course_id: int) -> CourseProgressSummary:
    """
    Recomputes course progress from the ledger.

    progress_percent is round(100 * completed / total), 0 for a course without modules.
    """
    modules = get_modules_for_course(db, course_id)
    completed_ids = {c.module_id for c in get_completed_modules(db, user_id, course_id)}

    total = len(modules)
    completed_module_ids = [m.id for m in modules if m.id in completed_ids]
    missing_module_ids = [m.id for m in modules if m.id not in completed_ids]
    completed_count = len(completed_module_ids)
    percent = round(100 * completed_count / total) if total > 0 else 0

    return CourseProgressSummary(
        total_modules=total,
        completed_count=completed_count,
        progress_percent=percent,
        all_completed=total > 0 and completed_count == total,
        completed_module_ids=completed_module_ids,
        missing_module_ids=missing_module_ids,
    )

def apply_summary(enrollment: UserCourseProgress, summary: CourseProgressSummary) -> UserCourseProgress:
    enrollment.progress = summary.progress_percent
    enrollment.completed = summary.all_completed
    return enrollment

# --- Enrollment ---
def get_enrollment(db: Session, user_id: int, course_id: int, for_update: bool = False) -> Optional[UserCourseProgress]:
    query = db.query(UserCourseProgress).filter(
        UserCourseProgress.user_id == user_id,
        UserCourseProgress.course_id == course_id,
    )
    if for_update:
        # Serializes concurrent read-modify-write on the same enrollment (no-op on SQLite)
        query = query.with_for_update()
    return query.first()

def _new_enrollment(db: Session, user_id: int, course: Course) -> UserCourseProgress:
    modules = get_modules_for_course(db, course.id)
    first_module = modules[0] if modules else None
    enrollment = UserCourseProgress(
        user_id=user_id,
        course_id=course.id,
        current_module_id=first_module.id if first_module else None,
        current_module_order=1,
        progress=0,
        completed=False,
    )
    db.add(enrollment)
    db.flush()
    return enrollment

def enroll_user(db: Session, user_id: int, course: Course) -> Tuple[UserCourseProgress, bool]:
    """Idempotent. Returns (enrollment, created)."""
    existing = get_enrollment(db, user_id, course.id)
    if existing:
        logger.debug(f"User {user_id} already enrolled in course {course.id}")
        return existing, False

    try:
        enrollment = _new_enrollment(db, user_id, course)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # Lost a race with a concurrent enrollment of the same user
        existing = get_enrollment(db, user_id, course.id)
        if existing is None:
            logger.error(f"Error enrolling user {user_id} in course {course.id}: {e}", exc_info=True)
            raise
        logger.info(f"User {user_id} was enrolled in course {course.id} by a concurrent request")
        return existing, False
    except Exception as e:
        db.rollback()
        logger.error(f"Error enrolling user {user_id} in course {course.id}: {e}", exc_info=True)
        raise
    db.refresh(enrollment)
    logger.info(f"User {user_id} enrolled in course {course.id} (enrollment ID: {enrollment.id})")
    return enrollment, True

def _get_or_create_locked_enrollment(db: Session, user_id: int, course: Course) -> UserCourseProgress:
    enrollment = get_enrollment(db, user_id, course.id, for_update=True)
    if enrollment is None:
        enrollment = _new_enrollment(db, user_id, course)
    return enrollment

def start_module(db: Session, user_id: int, course: Course, module: CourseModule) -> UserCourseProgress:
    try:
        enrollment = _get_or_create_locked_enrollment(db, user_id, course)
        enrollment.current_module_id = module.id
        enrollment.current_module_order = module.module_order
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error starting module {module.id} for user {user_id}: {e}", exc_info=True)
        raise
    db.refresh(enrollment)
    logger.info(f"User {user_id} started module {module.id} of course {course.id}")
    return enrollment

def record_module_progress(
    db: Session, user_id: int, course: Course, module: CourseModule, percent: float
) -> Tuple[UserCourseProgress, CourseProgressSummary]:
    """
    Applies a learner's per-module progress report and re-aggregates the course.

    A report at or above MODULE_COMPLETION_THRESHOLD completes the module. Lower
    reports never clear an existing completion. The enrollment is created if
    missing and committed together with the ledger change.
    """
    try:
        enrollment = _get_or_create_locked_enrollment(db, user_id, course)
        if percent >= settings.MODULE_COMPLETION_THRESHOLD:
            set_module_completion(db, user_id, module.id, True)

        summary = compute_course_progress(db, user_id, course.id)
        apply_summary(enrollment, summary)
        enrollment.current_module_id = module.id
        enrollment.current_module_order = module.module_order
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error recording progress for user {user_id}, module {module.id}: {e}", exc_info=True)
        raise
    db.refresh(enrollment)
    logger.info(
        f"Progress for user {user_id} in course {course.id}: module {module.id} at {percent}%, "
        f"course at {summary.progress_percent}% ({summary.completed_count}/{summary.total_modules})"
    )
    return enrollment, summary

def reset_module_completion(
    db: Session, user_id: int, course: Course, module: CourseModule
) -> Tuple[Optional[UserCourseProgress], CourseProgressSummary]:
    """Admin operation: clears a learner's completion of a module and re-aggregates."""
    try:
        set_module_completion(db, user_id, module.id, False)
        summary = compute_course_progress(db, user_id, course.id)
        enrollment = get_enrollment(db, user_id, course.id, for_update=True)
        if enrollment:
            apply_summary(enrollment, summary)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error resetting completion of module {module.id} for user {user_id}: {e}", exc_info=True)
        raise
    if enrollment:
        db.refresh(enrollment)
    logger.info(f"Completion of module {module.id} reset for user {user_id}; course {course.id} now at {summary.progress_percent}%")
    return enrollment, summary

def refresh_course_enrollments(db: Session, course_id: int) -> int:
    """Re-aggregates every enrollment of a course, e.g. after its module list changed."""
    enrollments = db.query(UserCourseProgress).filter(UserCourseProgress.course_id == course_id).all()
    try:
        for enrollment in enrollments:
            apply_summary(enrollment, compute_course_progress(db, enrollment.user_id, course_id))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error refreshing enrollments of course {course_id}: {e}", exc_info=True)
        raise
    logger.info(f"Refreshed {len(enrollments)} enrollments of course {course_id}")
    return len(enrollments)

def get_user_enrollments(db: Session, user_id: int) -> List[UserCourseProgress]:
    logger.debug(f"Fetching enrollments for user_id {user_id}")
    return (
        db.query(UserCourseProgress)
        .filter(UserCourseProgress.user_id == user_id)
        .order_by(UserCourseProgress.id.desc())
        .all()
    )
