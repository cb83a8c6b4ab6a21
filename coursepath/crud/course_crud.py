from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional
from datetime import datetime, timezone
import logging

from coursepath.models.enums import CourseStatus
from coursepath.models.course_model import (
    Course, CourseModule, ModuleTranscription, TranscriptSegment, CourseMaterial
)
from coursepath.models.user_progress_model import UserCourseProgress
from coursepath.schemas import course_schema as schemas

logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    """A referenced record does not exist, or does not belong to its parent."""

class ConflictError(ValueError):
    """The change collides with existing state (duplicate order, wrong lifecycle state)."""


# Helper function for updating entities
def update_db_object(db_obj, update_data: schemas.BaseModel):
    for field, value in update_data.model_dump(exclude_unset=True).items():
        setattr(db_obj, field, value)
    return db_obj

# --- Course CRUD ---
def create_course(db: Session, course_in: schemas.CourseCreate) -> Course:
    logger.debug(f"Creating course titled '{course_in.title}'")
    db_course = Course(**course_in.model_dump(), status=CourseStatus.ACTIVE)
    db.add(db_course)
    db.commit()
    db.refresh(db_course)
    logger.info(f"Course '{db_course.title}' (ID: {db_course.id}) created successfully.")
    return db_course

def get_course(db: Session, course_id: int) -> Optional[Course]:
    logger.debug(f"Fetching course with ID: {course_id}")
    return db.query(Course).filter(Course.id == course_id).first()

def get_courses(
    db: Session,
    skip: int = 0,
    limit: int = 20,
    status: CourseStatus = CourseStatus.ACTIVE,
) -> List[Course]:
    logger.debug(f"Fetching courses with skip: {skip}, limit: {limit}, status: {status}")
    return (
        db.query(Course)
        .filter(Course.status == status)
        .order_by(Course.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def update_course(db: Session, course: Course, course_in: schemas.CourseUpdate) -> Course:
    logger.debug(f"Updating course ID: {course.id} with data: {course_in.model_dump(exclude_unset=True)}")
    course_id = course.id
    course = update_db_object(course, course_in)
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating course ID {course_id}: {e}", exc_info=True)
        raise
    db.refresh(course)
    logger.info(f"Course '{course.title}' (ID: {course.id}) updated successfully.")
    return course

def archive_course(db: Session, course: Course) -> Course:
    if course.status == CourseStatus.ARCHIVED:
        raise ConflictError(f"Course {course.id} is already archived.")
    course.status = CourseStatus.ARCHIVED
    course.archived_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(course)
    logger.info(f"Course ID: {course.id} ('{course.title}') archived.")
    return course

def restore_course(db: Session, course: Course) -> Course:
    if course.status != CourseStatus.ARCHIVED:
        raise ConflictError(f"Course {course.id} is not archived.")
    course.status = CourseStatus.ACTIVE
    course.archived_at = None
    db.commit()
    db.refresh(course)
    logger.info(f"Course ID: {course.id} ('{course.title}') restored.")
    return course

def purge_course(db: Session, course: Course) -> None:
    """
    Permanently removes an archived course and everything attached to it
    (modules, materials, enrollments, completions, quiz data, transcripts, chats, certificates).
    """
    if course.status != CourseStatus.ARCHIVED:
        raise ConflictError("Only archived courses can be purged. Archive the course first.")

    course_id, title = course.id, course.title
    try:
        db.delete(course)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error purging course ID {course_id}: {e}", exc_info=True)
        raise
    logger.info(f"Course ID: {course_id} ('{title}') purged.")

# --- CourseModule CRUD ---
def _is_module_order_violation(error: IntegrityError) -> bool:
    # Postgres names the constraint; SQLite names the columns
    message = str(error.orig)
    return "uq_course_module_order" in message or "course_modules.module_order" in message

def _order_taken(db: Session, course_id: int, module_order: int, exclude_module_id: Optional[int] = None) -> bool:
    query = db.query(CourseModule).filter(
        CourseModule.course_id == course_id,
        CourseModule.module_order == module_order,
    )
    if exclude_module_id is not None:
        query = query.filter(CourseModule.id != exclude_module_id)
    return query.first() is not None

def create_course_module(db: Session, course: Course, module_in: schemas.CourseModuleCreate) -> CourseModule:
    logger.debug(f"Creating module '{module_in.title}' for course_id {course.id}")
    if _order_taken(db, course.id, module_in.module_order):
        raise ConflictError(f"Course {course.id} already has a module at position {module_in.module_order}.")

    db_module = CourseModule(**module_in.model_dump(), course_id=course.id)
    db.add(db_module)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if not _is_module_order_violation(e):
            logger.error(f"Error creating module for course {course.id}: {e}", exc_info=True)
            raise
        # Concurrent insert took the same order
        logger.warning(f"Module order conflict for course {course.id}: {e}")
        raise ConflictError(f"Course {course.id} already has a module at position {module_in.module_order}.")
    db.refresh(db_module)
    logger.info(f"Module '{db_module.title}' (ID: {db_module.id}) created for course ID {course.id}.")
    return db_module

def get_module(db: Session, module_id: int) -> Optional[CourseModule]:
    logger.debug(f"Fetching module with ID: {module_id}")
    return db.query(CourseModule).filter(CourseModule.id == module_id).first()

def get_course_module(db: Session, course_id: int, module_id: int) -> CourseModule:
    """Fetches a module and checks it belongs to the course. Raises NotFoundError otherwise."""
    module = get_module(db, module_id)
    if not module or module.course_id != course_id:
        raise NotFoundError(f"Module {module_id} not found in course {course_id}.")
    return module

def get_modules_for_course(db: Session, course_id: int) -> List[CourseModule]:
    logger.debug(f"Fetching modules for course_id {course_id}")
    return (
        db.query(CourseModule)
        .filter(CourseModule.course_id == course_id)
        .order_by(CourseModule.module_order)
        .all()
    )

def get_next_module(db: Session, module: CourseModule) -> Optional[CourseModule]:
    """The module following this one by order, or None for the last module."""
    return (
        db.query(CourseModule)
        .filter(CourseModule.course_id == module.course_id, CourseModule.module_order > module.module_order)
        .order_by(CourseModule.module_order)
        .first()
    )

def update_course_module(db: Session, module: CourseModule, module_in: schemas.CourseModuleUpdate) -> CourseModule:
    changes = module_in.model_dump(exclude_unset=True)
    logger.debug(f"Updating module ID: {module.id} with data: {changes}")
    new_order = changes.get("module_order")
    if new_order is not None and _order_taken(db, module.course_id, new_order, exclude_module_id=module.id):
        raise ConflictError(f"Course {module.course_id} already has a module at position {new_order}.")

    module_id, course_id = module.id, module.course_id
    module = update_db_object(module, module_in)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if not _is_module_order_violation(e):
            logger.error(f"Error updating module ID {module_id}: {e}", exc_info=True)
            raise
        logger.warning(f"Module order conflict while updating module {module_id}: {e}")
        raise ConflictError(f"Course {course_id} already has a module at position {new_order}.")
    db.refresh(module)
    logger.info(f"Module '{module.title}' (ID: {module.id}) updated successfully.")
    return module

def delete_course_module(db: Session, module: CourseModule) -> None:
    module_id, course_id = module.id, module.course_id
    logger.debug(f"Deleting module ID: {module_id} ('{module.title}')")
    try:
        # Not every backend honours ON DELETE SET NULL
        db.query(UserCourseProgress).filter(
            UserCourseProgress.current_module_id == module_id
        ).update({UserCourseProgress.current_module_id: None}, synchronize_session=False)
        db.delete(module)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting module ID {module_id}: {e}", exc_info=True)
        raise
    logger.info(f"Module ID: {module_id} deleted from course ID {course_id}.")

# --- Transcription CRUD ---
def get_module_transcription(db: Session, module_id: int) -> Optional[ModuleTranscription]:
    logger.debug(f"Fetching transcription for module_id {module_id}")
    return db.query(ModuleTranscription).filter(ModuleTranscription.module_id == module_id).first()

def upsert_module_transcription(
    db: Session, module: CourseModule, transcription_in: schemas.ModuleTranscriptionUpsert
) -> ModuleTranscription:
    """
    Stores the timestamped transcript of a module's video, replacing any previous one.
    The old segments and their embeddings are dropped; the module must be re-indexed afterwards.
    """
    segments = [
        TranscriptSegment(
            module_id=module.id,
            segment_index=idx,
            text=seg.text.strip(),
            start_time=seg.start_time,
            end_time=seg.end_time,
        )
        for idx, seg in enumerate(transcription_in.segments)
    ]
    full_text = " ".join(seg.text for seg in segments)

    transcription = get_module_transcription(db, module.id)
    try:
        if transcription:
            transcription.segments.clear()
            # Old rows must be gone before new ones reuse their segment_index
            db.flush()
            transcription.video_id = transcription_in.video_id
            transcription.text = full_text
            transcription.segments.extend(segments)
            transcription.indexed_at = None
        else:
            transcription = ModuleTranscription(
                module_id=module.id,
                video_id=transcription_in.video_id,
                text=full_text,
                segments=segments,
            )
            db.add(transcription)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error saving transcription for module ID {module.id}: {e}", exc_info=True)
        raise
    db.refresh(transcription)
    logger.info(f"Transcription for module ID {module.id} saved with {len(segments)} segments.")
    return transcription

def save_transcription_embeddings(
    db: Session, transcription: ModuleTranscription, embeddings: List[Optional[List[float]]]
) -> ModuleTranscription:
    """Attaches one embedding per segment (None when unavailable) and stamps indexed_at."""
    for segment, vector in zip(transcription.segments, embeddings):
        segment.embedding = vector
    transcription.indexed_at = datetime.now(timezone.utc)
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error storing embeddings for transcription ID {transcription.id}: {e}", exc_info=True)
        raise
    db.refresh(transcription)
    logger.info(f"Transcription for module ID {transcription.module_id} indexed ({transcription.segment_count} segments).")
    return transcription

# --- Course material CRUD ---
def get_course_materials(db: Session, course_id: int) -> List[CourseMaterial]:
    logger.debug(f"Fetching materials for course_id {course_id}")
    return (
        db.query(CourseMaterial)
        .filter(CourseMaterial.course_id == course_id)
        .order_by(CourseMaterial.id)
        .all()
    )

def get_course_material(db: Session, course_id: int, material_id: int) -> CourseMaterial:
    """Fetches a material and checks it belongs to the course. Raises NotFoundError otherwise."""
    material = db.query(CourseMaterial).filter(CourseMaterial.id == material_id).first()
    if not material or material.course_id != course_id:
        raise NotFoundError(f"Material {material_id} not found in course {course_id}.")
    return material

def create_course_material(db: Session, course: Course, material_in: schemas.CourseMaterialCreate) -> CourseMaterial:
    db_material = CourseMaterial(**material_in.model_dump(), course_id=course.id)
    db.add(db_material)
    db.commit()
    db.refresh(db_material)
    logger.info(f"Material '{db_material.title}' (ID: {db_material.id}) added to course ID {course.id}.")
    return db_material

def update_course_material(db: Session, material: CourseMaterial, material_in: schemas.CourseMaterialUpdate) -> CourseMaterial:
    logger.debug(f"Updating material ID: {material.id} with data: {material_in.model_dump(exclude_unset=True)}")
    material = update_db_object(material, material_in)
    db.commit()
    db.refresh(material)
    return material

def delete_course_material(db: Session, material: CourseMaterial) -> None:
    material_id, course_id = material.id, material.course_id
    db.delete(material)
    db.commit()
    logger.info(f"Material ID: {material_id} removed from course ID {course_id}.")
