from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import logging

from coursepath.models.enums import JobType, JobStatus
from coursepath.models.job_model import BackgroundJob

logger = logging.getLogger(__name__)


def create_job(
    db: Session,
    job_type: JobType,
    module_id: Optional[int],
    requested_by_id: Optional[int],
    payload: Optional[Dict[str, Any]] = None,
) -> BackgroundJob:
    job = BackgroundJob(
        job_type=job_type,
        status=JobStatus.PENDING,
        module_id=module_id,
        requested_by_id=requested_by_id,
        payload=payload or {},
        attempts=0,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(f"Job {job.id} ({job_type.value}) queued for module {module_id}")
    return job

def get_job(db: Session, job_id: int) -> Optional[BackgroundJob]:
    logger.debug(f"Fetching job with ID: {job_id}")
    return db.query(BackgroundJob).filter(BackgroundJob.id == job_id).first()

def get_jobs(
    db: Session,
    status: Optional[JobStatus] = None,
    job_type: Optional[JobType] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[BackgroundJob]:
    logger.debug(f"Fetching jobs with status: {status}, type: {job_type}, skip: {skip}, limit: {limit}")
    query = db.query(BackgroundJob)
    if status:
        query = query.filter(BackgroundJob.status == status)
    if job_type:
        query = query.filter(BackgroundJob.job_type == job_type)
    return query.order_by(BackgroundJob.id.desc()).offset(skip).limit(limit).all()

def mark_running(db: Session, job: BackgroundJob) -> BackgroundJob:
    job.status = JobStatus.RUNNING
    job.attempts = (job.attempts or 0) + 1
    job.started_at = datetime.now(timezone.utc)
    job.finished_at = None
    job.error = None
    db.commit()
    db.refresh(job)
    return job

def mark_finished(db: Session, job: BackgroundJob, error: Optional[str] = None) -> BackgroundJob:
    job.status = JobStatus.FAILED if error else JobStatus.SUCCEEDED
    job.error = error
    job.finished_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(job)
    return job

def reset_for_retry(db: Session, job: BackgroundJob) -> BackgroundJob:
    if job.status != JobStatus.FAILED:
        raise ValueError(f"Only failed jobs can be retried (job {job.id} is {job.status.value}).")
    job.status = JobStatus.PENDING
    job.error = None
    db.commit()
    db.refresh(job)
    logger.info(f"Job {job.id} reset for retry (attempts so far: {job.attempts})")
    return job
