from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy import func

from coursepath.models.user_model import User
from coursepath.models.enums import UserRole
from coursepath.schemas.user_schema import UserCreateInternal, AdminUserUpdate
from coursepath.core.config import settings

logger = logging.getLogger(__name__)


class ProtectedAccountError(ValueError):
    """The account cannot be changed through the admin API."""


def _apply_user_filters(query, filters: Optional[Dict[str, Any]] = None):
    if not filters:
        return query
    if filters.get("email_contains"):
        query = query.filter(User.email.ilike(f"%{filters['email_contains']}%"))
    if filters.get("role"):
        query = query.filter(User.role == filters["role"])
    return query

def get_user_by_id(db: Session, user_id: int) -> User | None:
    """Fetches a user by their internal database ID."""
    logger.debug(f"Fetching user by ID: {user_id}")
    return db.query(User).filter(User.id == user_id).first()

def get_user_by_email(db: Session, email: str) -> User | None:
    """Fetches a user by their email address."""
    logger.debug(f"Fetching user by email: {email}")
    return db.query(User).filter(User.email == email).first()

def get_user_by_firebase_uid(db: Session, firebase_uid: str) -> User | None:
    """Fetches a user by their Firebase UID."""
    logger.debug(f"Fetching user by Firebase UID: {firebase_uid}")
    return db.query(User).filter(User.firebase_uid == firebase_uid).first()

def create_user(db: Session, user_data: UserCreateInternal) -> User | None:
    """
    Creates a new user in the database.
    Assumes firebase_uid and email come from a verified Firebase ID token.
    Returns None when the UID or email is already taken.
    """
    logger.info(f"Attempting to create user for email: {user_data.email}, Firebase UID: {user_data.firebase_uid}")

    if get_user_by_firebase_uid(db, user_data.firebase_uid):
        logger.warning(f"User creation failed: Firebase UID {user_data.firebase_uid} already exists.")
        return None
    if get_user_by_email(db, user_data.email):
        logger.warning(f"User creation failed: Email {user_data.email} already exists.")
        return None

    db_user = User(
        firebase_uid=user_data.firebase_uid,
        email=user_data.email,
        display_name=user_data.display_name,
        role=user_data.role or UserRole.LEARNER.value,
    )

    try:
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
        logger.info(f"User created successfully: {db_user.email} (ID: {db_user.id})")
        return db_user
    except IntegrityError as e:
        db.rollback()
        # A concurrent registration won the race
        logger.error(f"Database integrity error during user creation for {user_data.email}: {e}", exc_info=True)
        return None

def get_users(db: Session, skip: int = 0, limit: int = 100, filters: Optional[Dict[str, Any]] = None) -> List[User]:
    logger.debug(f"Fetching users with skip: {skip}, limit: {limit}, filters: {filters}")
    query = _apply_user_filters(db.query(User), filters)
    return query.order_by(User.id.asc()).offset(skip).limit(limit).all()

def get_or_create_service_account(db: Session) -> User:
    """
    Returns the account background jobs act as, provisioning it on first use.
    Only flushes; the caller's transaction owns the commit.
    """
    service_user = get_user_by_firebase_uid(db, settings.SERVICE_ACCOUNT_UID)
    if service_user:
        return service_user

    logger.info(f"Provisioning service account '{settings.SERVICE_ACCOUNT_UID}'")
    service_user = User(
        firebase_uid=settings.SERVICE_ACCOUNT_UID,
        email=settings.SERVICE_ACCOUNT_EMAIL,
        display_name="CoursePath Service",
        role=UserRole.SERVICE.value,
    )
    db.add(service_user)
    db.flush()
    return service_user

def count_users(db: Session, filters: Optional[Dict[str, Any]] = None) -> int:
    logger.debug(f"Counting users with filters: {filters}")
    query = _apply_user_filters(db.query(func.count(User.id)), filters)
    return query.scalar() or 0

def update_user_by_admin(db: Session, user: User, data_in: AdminUserUpdate, acting_admin: User) -> User:
    """
    Applies an admin's change to another account.
    Raises ProtectedAccountError for the service account and for an admin changing their own role.
    """
    update_data = data_in.model_dump(exclude_unset=True)
    if update_data.get("role") is None:
        update_data.pop("role", None)
    if user.role == UserRole.SERVICE.value:
        raise ProtectedAccountError("The service account cannot be modified.")
    if "role" in update_data and user.id == acting_admin.id and update_data["role"] != user.role:
        raise ProtectedAccountError("Admins cannot change their own role.")

    logger.info(f"Admin {acting_admin.email} updating user ID {user.id} with data: {update_data}")
    for field, value in update_data.items():
        setattr(user, field, value)
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error during admin update of user ID {user.id}: {e}", exc_info=True)
        raise
    db.refresh(user)
    return user
