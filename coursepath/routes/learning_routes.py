from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session
from typing import List
from dataclasses import asdict
import logging

from coursepath.core.database import get_db
from coursepath.core.dependencies import (
    get_current_active_user,
    get_current_admin_user,
    get_active_course_or_404,
    get_active_course_module_or_404,
    get_course_or_404,
    get_course_module_or_404,
)
from coursepath.models.user_model import User
from coursepath.models.course_model import Course, CourseModule
from coursepath.schemas import user_progress_schema as up_schemas, course_schema as course_schemas
from coursepath.crud import progress_crud as up_crud, user_crud

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Learning & Progress"])


# --- Enrollment ---

@router.post("/courses/{course_id}/enroll", response_model=up_schemas.UserCourseProgressDisplay)
def enroll_in_course(
    response: Response,
    course: Course = Depends(get_active_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Enroll the current user. Returns 201 for a new enrollment and 200 with the
    existing one if the user is already enrolled.
    """
    enrollment, created = up_crud.enroll_user(db, current_user.id, course)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return enrollment


@router.post("/courses/{course_id}/modules/{module_id}/start", response_model=up_schemas.UserCourseProgressDisplay)
def start_course_module(
    course: Course = Depends(get_active_course_or_404),
    module: CourseModule = Depends(get_active_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    logger.info(f"User {current_user.email} starting module {module.id} of course {course.id}")
    return up_crud.start_module(db, current_user.id, course, module)


@router.post("/courses/{course_id}/modules/{module_id}/progress", response_model=up_schemas.UserCourseProgressDisplay)
def report_module_progress(
    progress_in: up_schemas.ModuleProgressUpdate,
    course: Course = Depends(get_active_course_or_404),
    module: CourseModule = Depends(get_active_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Report how much of a module the user has consumed (0-100).
    Reports at or above the completion threshold complete the module; the
    course progress is recomputed from all completed modules.
    """
    enrollment, _summary = up_crud.record_module_progress(db, current_user.id, course, module, progress_in.progress)
    return enrollment


@router.post(
    "/courses/{course_id}/modules/{module_id}/reset-completion",
    response_model=up_schemas.CourseProgressSummaryDisplay,
)
def reset_learner_module_completion(
    reset_in: up_schemas.ModuleCompletionReset,
    course: Course = Depends(get_course_or_404),
    module: CourseModule = Depends(get_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Clear a learner's completion of a module. (Admin only)
    """
    learner = user_crud.get_user_by_id(db, reset_in.user_id)
    if not learner:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {reset_in.user_id} not found.")

    logger.info(f"Admin {current_user.email} resetting completion of module {module.id} for user {learner.id}")
    _enrollment, summary = up_crud.reset_module_completion(db, learner.id, course, module)
    return up_schemas.CourseProgressSummaryDisplay(**asdict(summary))


# --- Current user's courses ---

@router.get("/user/courses", response_model=List[up_schemas.EnrolledCourseDisplay])
def get_my_enrolled_courses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Courses the user is enrolled in, with their progress. Archived courses are left out.
    """
    logger.debug(f"Fetching enrolled courses for user {current_user.email} (ID: {current_user.id})")
    my_courses = []
    for enrollment in up_crud.get_user_enrollments(db, current_user.id):
        course = enrollment.course
        if not course.is_active:
            continue
        course_data = course_schemas.CourseDisplay.model_validate(course)
        my_courses.append(up_schemas.EnrolledCourseDisplay(
            **course_data.model_dump(),
            progress=enrollment.progress,
            completed=enrollment.completed,
            current_module_id=enrollment.current_module_id,
        ))
    return my_courses


@router.get("/user/courses/{course_id}/progress", response_model=up_schemas.UserCourseProgressDisplay)
def get_my_course_progress(
    course: Course = Depends(get_active_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    The user's enrollment in a course, or a zero-state record if not enrolled.
    """
    enrollment = up_crud.get_enrollment(db, current_user.id, course.id)
    if enrollment:
        return enrollment
    return up_schemas.UserCourseProgressDisplay(
        user_id=current_user.id,
        course_id=course.id,
        current_module_id=None,
        current_module_order=1,
        progress=0,
        completed=False,
    )
