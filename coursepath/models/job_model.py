from sqlalchemy import Column, Integer, Text, TIMESTAMP, ForeignKey, JSON, Enum as SAEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from coursepath.core.database import Base
from coursepath.models.enums import JobType, JobStatus

class BackgroundJob(Base):
    """Persisted record of work scheduled after a request, so failures stay visible and retryable."""
    __tablename__ = "background_jobs"

    id = Column(Integer, primary_key=True, index=True)
    job_type = Column(SAEnum(JobType, name="job_type_enum", values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    status = Column(
        SAEnum(JobStatus, name="job_status_enum", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
    )
    module_id = Column(Integer, ForeignKey("course_modules.id", ondelete="CASCADE"), nullable=True, index=True)
    requested_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    payload = Column(JSON, nullable=False, default=dict)

    attempts = Column(Integer, nullable=False, default=0)
    error = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    started_at = Column(TIMESTAMP(timezone=True), nullable=True)
    finished_at = Column(TIMESTAMP(timezone=True), nullable=True)

    requested_by = relationship("User")

    def __repr__(self):
        return f"<BackgroundJob(id={self.id}, type='{self.job_type}', status='{self.status}', module_id={self.module_id})>"
