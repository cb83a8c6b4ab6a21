from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime

from coursepath.models.enums import JobType, JobStatus

class BackgroundJobDisplay(BaseModel):
    id: int
    job_type: JobType
    status: JobStatus
    module_id: Optional[int] = None
    requested_by_id: Optional[int] = None
    payload: Dict[str, Any] = {}
    attempts: int
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    class Config:
        from_attributes = True
