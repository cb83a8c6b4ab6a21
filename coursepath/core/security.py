import logging
from fastapi import HTTPException, status
from firebase_admin import auth
from firebase_admin.auth import InvalidIdTokenError, ExpiredIdTokenError, RevokedIdTokenError, UserDisabledError

from coursepath.core.config import settings
from coursepath.core.firebase_config import get_firebase_app
from coursepath.schemas.user_schema import TokenData

logger = logging.getLogger(__name__)

# Most specific first: ExpiredIdTokenError and RevokedIdTokenError subclass InvalidIdTokenError
_REJECTED_TOKEN_MESSAGES = [
    (ExpiredIdTokenError, "Authentication token has expired. Please log in again."),
    (RevokedIdTokenError, "Authentication token has been revoked. Please log in again."),
    (UserDisabledError, "This account has been disabled."),
    (InvalidIdTokenError, "Invalid or expired authentication token."),
]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_firebase_id_token(id_token: str) -> TokenData:
    """
    Verifies a Firebase ID token and returns the caller's uid, email and name.

    Raises:
        HTTPException: 401 for a rejected token or one without uid/email claims,
            500 when the Firebase Admin SDK itself fails.
    """
    try:
        get_firebase_app()
        decoded_token = auth.verify_id_token(id_token, check_revoked=settings.FIREBASE_CHECK_REVOKED)
    except tuple(exc for exc, _ in _REJECTED_TOKEN_MESSAGES) as e:
        logger.warning(f"Firebase ID token rejected: {e}")
        detail = next(msg for exc, msg in _REJECTED_TOKEN_MESSAGES if isinstance(e, exc))
        raise _unauthorized(detail)
    except Exception as e:
        logger.error(f"Unexpected error during Firebase ID token verification: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not verify authentication token due to a server error.",
        )

    firebase_uid = decoded_token.get("uid")
    email = decoded_token.get("email")
    if not firebase_uid or not email:
        logger.warning("Firebase ID token is missing 'uid' or 'email' claims.")
        raise _unauthorized("Invalid authentication credentials: Missing essential token claims.")

    logger.debug(f"Firebase ID token verified for UID: {firebase_uid}")
    return TokenData(firebase_uid=firebase_uid, email=email, name=decoded_token.get("name"))
