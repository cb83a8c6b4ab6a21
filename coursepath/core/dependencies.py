from fastapi import Depends, HTTPException, status, Request
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.orm import Session
import logging

from coursepath.core.database import get_db
from coursepath.core.security import verify_firebase_id_token
from coursepath.crud.user_crud import get_user_by_firebase_uid, get_user_by_id
from coursepath.crud.course_crud import get_course, get_module
from coursepath.models.user_model import User
from coursepath.models.course_model import Course, CourseModule
from coursepath.models.enums import UserRole
from coursepath.schemas.user_schema import TokenData

logger = logging.getLogger(__name__)

# Dependency to get the current user from a Firebase ID token
async def get_current_user(
    request: Request, db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user.
    Verifies the Firebase ID token from the Authorization header,
    then fetches the user from the database.
    """
    authorization: str = request.headers.get("Authorization")
    scheme, param = get_authorization_scheme_param(authorization)

    if not authorization or scheme.lower() != "bearer":
        logger.warning("Missing or invalid Bearer token in Authorization header.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Bearer token required.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        token_data: TokenData = verify_firebase_id_token(param)
    except HTTPException as e:
        logger.warning(f"Token verification failed: {e.detail}")
        raise e

    user = get_user_by_firebase_uid(db, firebase_uid=token_data.firebase_uid)
    if user is None:
        # Authenticated with Firebase but never completed /auth/register
        logger.warning(f"User not found in DB for Firebase UID: {token_data.firebase_uid} from token.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account not found or not fully registered in the system.",
        )

    logger.debug(f"Authenticated user retrieved: {user.email} (ID: {user.id})")
    return user


# --- User Status/Role Dependencies ---
async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """
    Rejects the service account; it exists for background jobs only.
    """
    if current_user.role == UserRole.SERVICE.value:
        logger.warning(f"Service account {current_user.firebase_uid} attempted an interactive request.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Service accounts cannot call the API.")
    return current_user


async def get_current_admin_user(current_user: User = Depends(get_current_active_user)) -> User:
    """
    Checks if the current user has the 'Admin' role.
    """
    if not current_user.is_admin:
        logger.warning(f"Admin access denied for user: {current_user.email} (Role: {current_user.role})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not permitted: Requires admin privileges.",
        )
    logger.debug(f"Admin access granted for user: {current_user.email}")
    return current_user


# --- Resource Specific Fetching Dependencies ---

# Any lifecycle state; admin routes
def get_course_or_404(course_id: int, db: Session = Depends(get_db)) -> Course:
    course = get_course(db, course_id)
    if not course:
        logger.warning(f"Course with ID {course_id} not found.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Course with ID {course_id} not found.")
    return course

# Archived courses are hidden from learners
def get_active_course_or_404(course: Course = Depends(get_course_or_404)) -> Course:
    if not course.is_active:
        logger.warning(f"Course with ID {course.id} is archived; hidden from learners.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Course with ID {course.id} not found.")
    return course

def _module_of_course_or_404(db: Session, course: Course, module_id: int) -> CourseModule:
    module = get_module(db, module_id)
    if not module or module.course_id != course.id:
        logger.warning(f"Module {module_id} not found in course {course.id}.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course or module not found")
    return module

def get_course_module_or_404(
    module_id: int,
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
) -> CourseModule:
    return _module_of_course_or_404(db, course, module_id)

def get_active_course_module_or_404(
    module_id: int,
    course: Course = Depends(get_active_course_or_404),
    db: Session = Depends(get_db),
) -> CourseModule:
    return _module_of_course_or_404(db, course, module_id)

def get_user_or_404(user_id: int, db: Session = Depends(get_db)) -> User:
    user = get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")
    return user
