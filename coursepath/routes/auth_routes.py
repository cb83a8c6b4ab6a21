from fastapi import APIRouter, Depends, HTTPException, status, Body
from sqlalchemy.orm import Session
import logging

from coursepath.core.database import get_db
from coursepath.core.dependencies import get_current_active_user
from coursepath.core.security import verify_firebase_id_token
from coursepath.crud.user_crud import (
    create_user,
    get_user_by_firebase_uid,
    get_user_by_email,
)
from coursepath.models.enums import UserRole
from coursepath.models.user_model import User
from coursepath.schemas.user_schema import (
    UserRegisterRequest,
    UserDisplay,
    AuthResponse,
    UserCreateInternal,
    TokenData
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_user_after_firebase(
    payload: UserRegisterRequest = Body(...),
    db: Session = Depends(get_db)
):
    """
    Register a new learner in the application's database after successful
    sign-up with Firebase on the client side.

    The client must obtain a Firebase ID token and send it in the request body.
    """
    logger.info("Registration attempt with Firebase ID token.")

    try:
        token_data: TokenData = verify_firebase_id_token(payload.firebase_id_token)
    except HTTPException as e:
        logger.warning(f"Firebase ID token verification failed during registration: {e.detail}")
        raise e

    firebase_uid = token_data.firebase_uid
    email = token_data.email

    if get_user_by_firebase_uid(db, firebase_uid=firebase_uid):
        logger.warning(f"Registration failed: User with Firebase UID {firebase_uid} already exists.")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this Firebase UID already exists.",
        )
    if get_user_by_email(db, email=email):
        logger.warning(f"Registration failed: User with email {email} already exists.")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists.",
        )

    user_create_data = UserCreateInternal(
        firebase_uid=firebase_uid,
        email=email,
        display_name=payload.display_name or token_data.name,
        role=UserRole.LEARNER.value,
    )

    db_user = create_user(db, user_data=user_create_data)
    if not db_user:
        logger.error(f"Failed to create user in database for Firebase UID: {firebase_uid}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create user account. Please try again later.",
        )

    logger.info(f"User {email} (UID: {firebase_uid}) registered (ID: {db_user.id}).")
    return AuthResponse(
        message="User registered successfully.",
        user=UserDisplay.model_validate(db_user)
    )


@router.get("/me", response_model=UserDisplay)
async def read_current_user(current_user: User = Depends(get_current_active_user)):
    """
    Returns the profile of the authenticated user.
    """
    return current_user
