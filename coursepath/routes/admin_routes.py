from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from coursepath.core.database import get_db
from coursepath.core.dependencies import get_current_admin_user, get_user_or_404
from coursepath.models.enums import JobStatus, JobType, UserRole
from coursepath.models.user_model import User
from coursepath.schemas import job_schema, user_schema
from coursepath.crud import job_crud, user_crud
from coursepath.services import task_queue

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(get_current_admin_user)]
)


@router.get("/jobs", response_model=List[job_schema.BackgroundJobDisplay])
def list_background_jobs(
    status_filter: Optional[JobStatus] = Query(None, alias="status"),
    job_type: Optional[JobType] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db)
):
    """
    Background jobs, newest first, optionally filtered by status and type.
    """
    return job_crud.get_jobs(db, status=status_filter, job_type=job_type, skip=skip, limit=limit)


@router.post("/jobs/{job_id}/retry", response_model=job_schema.BackgroundJobDisplay, status_code=status.HTTP_202_ACCEPTED)
def retry_background_job(
    job_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user)
):
    job = job_crud.get_job(db, job_id)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Job with ID {job_id} not found.")
    try:
        job = task_queue.retry_job(db, background_tasks, job)
    except ValueError as e:
        logger.warning(f"Admin {admin_user.email} retry of job {job_id} refused: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    logger.info(f"Admin {admin_user.email} requeued job {job_id}")
    return job


# --- User management ---
# Accounts are created by /auth/register after Firebase sign-up; admins only view and adjust them.

@router.get("/users", response_model=user_schema.PaginatedUsers)
def admin_list_users(
    skip: int = Query(0, ge=0, alias="page_offset"),
    limit: int = Query(20, ge=1, le=200, alias="page_size"),
    email_contains: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    db: Session = Depends(get_db)
):
    """
    All users with pagination, optionally filtered by role or an email fragment.
    """
    filters = {"email_contains": email_contains, "role": role.value if role else None}
    active_filters = {k: v for k, v in filters.items() if v is not None}

    total_users = user_crud.count_users(db, filters=active_filters)
    users = user_crud.get_users(db, skip=skip, limit=limit, filters=active_filters)
    return user_schema.PaginatedUsers(
        total=total_users,
        users=[user_schema.UserDisplay.model_validate(u) for u in users],
        page=(skip // limit) + 1,
        size=limit,
    )


@router.get("/users/{user_id}", response_model=user_schema.UserDisplay)
def admin_get_user(user: User = Depends(get_user_or_404)):
    return user


@router.put("/users/{user_id}", response_model=user_schema.UserDisplay)
def admin_update_user(
    user_update_in: user_schema.AdminUserUpdate,
    user: User = Depends(get_user_or_404),
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user)
):
    """
    Changes a user's display name or role (Learner or Admin).
    The service account and the caller's own role are off limits (403).
    """
    try:
        return user_crud.update_user_by_admin(db, user, user_update_in, acting_admin=admin_user)
    except user_crud.ProtectedAccountError as e:
        logger.warning(f"Admin {admin_user.email} update of user {user.id} refused: {e}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
