from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class CertificateCreate(BaseModel):
    user_id: int = Field(..., description="Learner receiving the certificate")
    course_id: int
    thumbnail_url: Optional[str] = Field(None, max_length=500)

class CertificateDisplay(BaseModel):
    id: int
    user_id: int
    course_id: int
    course_name: str
    issued_date: datetime
    credential_id: str
    thumbnail_url: Optional[str] = None

    class Config:
        from_attributes = True
