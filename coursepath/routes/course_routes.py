from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List
import logging

from coursepath.core.database import get_db
from coursepath.core.dependencies import (
    get_current_active_user,
    get_current_admin_user,
    get_course_or_404,
    get_active_course_or_404,
    get_course_module_or_404,
    get_active_course_module_or_404,
)
from coursepath.models.enums import CourseStatus, JobType
from coursepath.models.user_model import User
from coursepath.models.course_model import Course, CourseModule
from coursepath.schemas import course_schema as schemas
from coursepath.crud import course_crud as crud, progress_crud
from coursepath.services import task_queue

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/courses", tags=["Courses & Modules"])

# --- Course Endpoints ---
@router.post("/", response_model=schemas.CourseDisplay, status_code=status.HTTP_201_CREATED)
def create_new_course(
    course_in: schemas.CourseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Create a new course. (Admin only)
    """
    logger.info(f"Admin user {current_user.email} creating course: {course_in.title}")
    return crud.create_course(db=db, course_in=course_in)

@router.get("/", response_model=List[schemas.CourseDisplay])
def read_courses_list(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """
    List active courses. Publicly accessible.
    """
    return crud.get_courses(db, skip=skip, limit=limit, status=CourseStatus.ACTIVE)

@router.get("/archived", response_model=List[schemas.CourseDisplay])
def read_archived_courses(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    List archived courses. (Admin only)
    """
    return crud.get_courses(db, skip=skip, limit=limit, status=CourseStatus.ARCHIVED)

@router.get("/{course_id}", response_model=schemas.CourseDetailDisplay)
def read_single_course(course: Course = Depends(get_active_course_or_404)):
    """
    Get a course with its ordered modules. Publicly accessible; archived courses are hidden.
    """
    return course

@router.patch("/{course_id}", response_model=schemas.CourseDisplay)
def update_existing_course(
    course_in: schemas.CourseUpdate,
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    logger.info(f"Admin {current_user.email} updating course ID {course.id}")
    return crud.update_course(db=db, course=course, course_in=course_in)

@router.post("/{course_id}/archive", response_model=schemas.CourseDisplay)
def archive_existing_course(
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Hide a course from learners. Its data is kept until the course is purged.
    """
    try:
        return crud.archive_course(db, course)
    except crud.ConflictError as e:
        logger.warning(f"Archive of course {course.id} refused: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

@router.post("/{course_id}/restore", response_model=schemas.CourseDisplay)
def restore_archived_course(
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    try:
        return crud.restore_course(db, course)
    except crud.ConflictError as e:
        logger.warning(f"Restore of course {course.id} refused: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
def purge_archived_course(
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Permanently delete an archived course with all its modules, progress and certificates. (Admin only)
    """
    logger.info(f"Admin {current_user.email} purging course ID {course.id}")
    try:
        crud.purge_course(db, course)
    except crud.ConflictError as e:
        logger.warning(f"Purge of course {course.id} refused: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return None

# --- CourseModule Endpoints ---
@router.get("/{course_id}/modules", response_model=List[schemas.CourseModuleDisplay])
def read_modules_for_course(
    course: Course = Depends(get_active_course_or_404),
    db: Session = Depends(get_db)
):
    return crud.get_modules_for_course(db, course.id)

@router.post("/{course_id}/modules", response_model=schemas.CourseModuleDisplay, status_code=status.HTTP_201_CREATED)
def create_new_module_for_course(
    module_in: schemas.CourseModuleCreate,
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Add a module to a course. (Admin only)
    Existing enrollments are re-aggregated against the new module count.
    """
    logger.info(f"Admin {current_user.email} creating module '{module_in.title}' in course {course.id}")
    try:
        module = crud.create_course_module(db, course, module_in)
    except crud.ConflictError as e:
        logger.warning(f"Module creation refused: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    progress_crud.refresh_course_enrollments(db, course.id)
    db.refresh(module)
    return module

@router.get("/{course_id}/modules/{module_id}", response_model=schemas.CourseModuleDisplay)
def read_single_module(module: CourseModule = Depends(get_active_course_module_or_404)):
    return module

@router.patch("/{course_id}/modules/{module_id}", response_model=schemas.CourseModuleDisplay)
def update_existing_module(
    module_in: schemas.CourseModuleUpdate,
    background_tasks: BackgroundTasks,
    module: CourseModule = Depends(get_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Update a module. (Admin only)
    A new video URL re-indexes the module's transcript in the background.
    """
    video_changed = "video_url" in module_in.model_fields_set and module_in.video_url != module.video_url
    try:
        module = crud.update_course_module(db, module, module_in)
    except crud.ConflictError as e:
        logger.warning(f"Module update refused: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    if video_changed and crud.get_module_transcription(db, module.id):
        task_queue.enqueue_job(db, background_tasks, JobType.TRANSCRIPT_INDEXING, module.id, current_user.id)
    return module

@router.delete("/{course_id}/modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_existing_module(
    module: CourseModule = Depends(get_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    course_id = module.course_id
    logger.info(f"Admin {current_user.email} deleting module ID {module.id} from course {course_id}")
    crud.delete_course_module(db, module)
    progress_crud.refresh_course_enrollments(db, course_id)
    return None

# --- Transcription Endpoints ---
@router.get("/{course_id}/modules/{module_id}/transcription", response_model=schemas.ModuleTranscriptionDisplay)
def read_module_transcription(
    module: CourseModule = Depends(get_active_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    transcription = crud.get_module_transcription(db, module.id)
    if not transcription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transcription not found for this module.")
    return transcription

@router.put("/{course_id}/modules/{module_id}/transcription", response_model=schemas.ModuleTranscriptionDisplay)
def upload_module_transcription(
    transcription_in: schemas.ModuleTranscriptionUpsert,
    background_tasks: BackgroundTasks,
    module: CourseModule = Depends(get_course_module_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Store the timestamped transcript of a module's video. (Admin only)
    Indexing runs in the background and may chain automatic quiz generation.
    """
    logger.info(f"Admin {current_user.email} uploading transcription for module {module.id}")
    transcription = crud.upsert_module_transcription(db, module, transcription_in)
    task_queue.enqueue_job(db, background_tasks, JobType.TRANSCRIPT_INDEXING, module.id, current_user.id)
    return transcription

# --- Course Material Endpoints ---
@router.get("/{course_id}/materials", response_model=List[schemas.CourseMaterialDisplay])
def read_course_materials(
    course: Course = Depends(get_active_course_or_404),
    db: Session = Depends(get_db)
):
    """
    Slides, handouts and links attached to a course. Publicly accessible.
    """
    return crud.get_course_materials(db, course.id)

@router.post("/{course_id}/materials", response_model=schemas.CourseMaterialDisplay, status_code=status.HTTP_201_CREATED)
def create_course_material(
    material_in: schemas.CourseMaterialCreate,
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    logger.info(f"Admin {current_user.email} adding material '{material_in.title}' to course {course.id}")
    return crud.create_course_material(db, course, material_in)

def _material_or_404(db: Session, course: Course, material_id: int):
    try:
        return crud.get_course_material(db, course.id, material_id)
    except crud.NotFoundError as e:
        logger.warning(str(e))
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course or material not found")

@router.patch("/{course_id}/materials/{material_id}", response_model=schemas.CourseMaterialDisplay)
def update_course_material(
    material_id: int,
    material_in: schemas.CourseMaterialUpdate,
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    material = _material_or_404(db, course, material_id)
    return crud.update_course_material(db, material, material_in)

@router.delete("/{course_id}/materials/{material_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_course_material(
    material_id: int,
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    material = _material_or_404(db, course, material_id)
    logger.info(f"Admin {current_user.email} removing material ID {material.id} from course {course.id}")
    crud.delete_course_material(db, material)
    return None
