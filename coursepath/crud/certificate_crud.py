from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional, Tuple
from datetime import datetime, timezone
import logging
import secrets

from coursepath.models.certificate_model import Certificate
from coursepath.models.user_model import User
from coursepath.models.course_model import Course
from coursepath.crud import progress_crud, user_crud
from coursepath.crud.course_crud import NotFoundError
from coursepath.services import email_service

logger = logging.getLogger(__name__)

CREDENTIAL_PREFIX = "CP"
MAX_CREDENTIAL_ATTEMPTS = 5


class CertificatePermissionError(ValueError):
    """A non-admin asked for someone else's certificate."""

class EnrollmentRequiredError(ValueError):
    """The learner has no enrollment in the course."""

class CertificateEligibilityError(ValueError):
    """Some modules of the course are still incomplete."""

    def __init__(self, completed: int, total: int, missing_modules: List[int]):
        self.completed = completed
        self.total = total
        self.missing_modules = missing_modules
        super().__init__(
            f"You must complete all modules to receive a certificate ({completed}/{total} completed)."
        )


def generate_credential_id(issued: Optional[datetime] = None) -> str:
    """CP-<YYYYMMDD>-<10 hex chars>"""
    issued = issued or datetime.now(timezone.utc)
    return f"{CREDENTIAL_PREFIX}-{issued.strftime('%Y%m%d')}-{secrets.token_hex(5).upper()}"

def get_certificate_by_credential_id(db: Session, credential_id: str) -> Optional[Certificate]:
    logger.debug(f"Fetching certificate by credential ID: {credential_id}")
    return db.query(Certificate).filter(Certificate.credential_id == credential_id).first()

def _unique_credential_id(db: Session, issued: datetime) -> str:
    for _ in range(MAX_CREDENTIAL_ATTEMPTS):
        credential_id = generate_credential_id(issued)
        if not get_certificate_by_credential_id(db, credential_id):
            return credential_id
        logger.warning(f"Credential ID collision on {credential_id}, regenerating")
    raise RuntimeError(f"Could not generate a unique credential ID after {MAX_CREDENTIAL_ATTEMPTS} attempts.")

def get_user_course_certificate(db: Session, user_id: int, course_id: int) -> Optional[Certificate]:
    return db.query(Certificate).filter(
        Certificate.user_id == user_id,
        Certificate.course_id == course_id,
    ).first()

def issue_certificate(
    db: Session,
    actor: User,
    user_id: int,
    course: Course,
    thumbnail_url: Optional[str] = None,
) -> Tuple[Certificate, bool]:
    """
    Issues a course certificate. Returns (certificate, created).

    Learners may only request their own certificate, must be enrolled, and must have
    completed every module according to a fresh aggregation. Admins bypass the
    enrollment and completion checks. A second request returns the existing certificate.
    """
    if not actor.is_admin and actor.id != user_id:
        raise CertificatePermissionError("Not authorized to create certificates for other users")

    recipient = actor if actor.id == user_id else user_crud.get_user_by_id(db, user_id)
    if recipient is None:
        raise NotFoundError(f"User with ID {user_id} not found.")

    existing = get_user_course_certificate(db, user_id, course.id)
    if existing:
        logger.info(f"Certificate already exists for user_id {user_id}, course_id {course.id} (ID: {existing.id}).")
        return existing, False

    enrollment = progress_crud.get_enrollment(db, user_id, course.id, for_update=True)
    if not actor.is_admin:
        if enrollment is None:
            raise EnrollmentRequiredError("You must be enrolled in the course to get a certificate")
        summary = progress_crud.compute_course_progress(db, user_id, course.id)
        logger.debug(f"Certificate check for user {user_id}, course {course.id}: {summary.completed_count}/{summary.total_modules}")
        if not summary.all_completed:
            raise CertificateEligibilityError(summary.completed_count, summary.total_modules, summary.missing_module_ids)

    issued = datetime.now(timezone.utc)
    try:
        certificate = Certificate(
            user_id=user_id,
            course_id=course.id,
            course_name=course.title,
            issued_date=issued,
            credential_id=_unique_credential_id(db, issued),
            thumbnail_url=thumbnail_url or course.image_url,
        )
        db.add(certificate)
        if enrollment and not enrollment.completed:
            enrollment.completed = True
            enrollment.progress = 100
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # Lost a race with a concurrent request for the same certificate
        existing = get_user_course_certificate(db, user_id, course.id)
        if existing is None:
            logger.error(f"Error issuing certificate for user_id {user_id}, course_id {course.id}: {e}", exc_info=True)
            raise
        logger.info(f"Certificate for user_id {user_id}, course_id {course.id} was issued by a concurrent request.")
        return existing, False
    except Exception as e:
        db.rollback()
        logger.error(f"Error issuing certificate for user_id {user_id}, course_id {course.id}: {e}", exc_info=True)
        raise
    db.refresh(certificate)
    logger.info(f"Certificate issued for user_id {user_id}, course_id {course.id} (ID: {certificate.id}, credential: {certificate.credential_id}).")

    email_service.send_certificate_issued_email(recipient, certificate)
    return certificate, True

def get_certificate_by_id(db: Session, certificate_id: int) -> Optional[Certificate]:
    """Fetches a certificate by its primary ID."""
    logger.debug(f"Fetching certificate by ID: {certificate_id}")
    return db.query(Certificate).filter(Certificate.id == certificate_id).first()

def get_certificates_for_user(db: Session, user_id: int, skip: int = 0, limit: int = 50) -> List[Certificate]:
    """Fetches all certificates issued to a specific user."""
    logger.debug(f"Fetching certificates for user_id {user_id} with skip: {skip}, limit: {limit}")
    return (
        db.query(Certificate)
        .filter(Certificate.user_id == user_id)
        .order_by(Certificate.issued_date.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def get_certificates_for_course(db: Session, course_id: int, skip: int = 0, limit: int = 100) -> List[Certificate]:
    """Fetches all certificates issued for a specific course."""
    logger.debug(f"Fetching certificates for course_id {course_id} with skip: {skip}, limit: {limit}")
    return (
        db.query(Certificate)
        .filter(Certificate.course_id == course_id)
        .order_by(Certificate.issued_date.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def delete_certificate(db: Session, certificate: Certificate) -> None:
    certificate_id = certificate.id
    try:
        db.delete(certificate)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting certificate ID {certificate_id}: {e}", exc_info=True)
        raise
    logger.info(f"Certificate ID {certificate_id} deleted.")
