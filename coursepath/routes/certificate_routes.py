from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import List
import logging

from coursepath.core.database import get_db
from coursepath.core.dependencies import get_current_active_user, get_current_admin_user, get_course_or_404
from coursepath.models.user_model import User
from coursepath.models.course_model import Course
from coursepath.models.certificate_model import Certificate
from coursepath.schemas import certificate_schema as cert_schemas
from coursepath.crud import certificate_crud as cert_crud, course_crud

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Certificates"])


def _get_certificate_or_404(db: Session, certificate_id: int) -> Certificate:
    certificate = cert_crud.get_certificate_by_id(db, certificate_id)
    if not certificate:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Certificate not found")
    return certificate


@router.post("/certificates", response_model=cert_schemas.CertificateDisplay)
def request_certificate(
    certificate_in: cert_schemas.CertificateCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Issue a course certificate once every module is completed.

    Learners request their own certificate; admins may issue one to anybody
    without the completion checks. Returns 201 when a certificate is created
    and 200 with the existing one otherwise.
    """
    course = course_crud.get_course(db, certificate_in.course_id)
    if not course or (not course.is_active and not current_user.is_admin):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Course with ID {certificate_in.course_id} not found.")

    try:
        certificate, created = cert_crud.issue_certificate(
            db, current_user, certificate_in.user_id, course, certificate_in.thumbnail_url
        )
    except cert_crud.CertificatePermissionError as e:
        logger.warning(f"User {current_user.email} denied certificate for user {certificate_in.user_id}: {e}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except course_crud.NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except cert_crud.EnrollmentRequiredError as e:
        logger.warning(f"Certificate refused for user {certificate_in.user_id}, course {course.id}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except cert_crud.CertificateEligibilityError as e:
        logger.warning(f"Certificate refused for user {certificate_in.user_id}, course {course.id}: {e.completed}/{e.total} modules")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": str(e),
                "completed": e.completed,
                "total": e.total,
                "missing_modules": e.missing_modules,
            },
        )

    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return certificate


@router.get("/user/certificates", response_model=List[cert_schemas.CertificateDisplay])
def read_my_certificates(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return cert_crud.get_certificates_for_user(db, current_user.id)


@router.get("/certificates/{certificate_id}", response_model=cert_schemas.CertificateDisplay)
def read_certificate(
    certificate_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    certificate = _get_certificate_or_404(db, certificate_id)
    if certificate.user_id != current_user.id and not current_user.is_admin:
        logger.warning(f"User {current_user.email} denied access to certificate {certificate_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to view this certificate")
    return certificate


@router.get("/courses/{course_id}/certificates", response_model=List[cert_schemas.CertificateDisplay])
def read_course_certificates(
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    return cert_crud.get_certificates_for_course(db, course.id)


@router.delete("/certificates/{certificate_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_certificate(
    certificate_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    certificate = _get_certificate_or_404(db, certificate_id)
    logger.info(f"Admin {current_user.email} deleting certificate {certificate_id}")
    cert_crud.delete_certificate(db, certificate)
    return None
