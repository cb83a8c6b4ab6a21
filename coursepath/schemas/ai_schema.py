from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

class AIQuestionRequest(BaseModel):
    course_id: int
    module_id: Optional[int] = None
    question: str = Field(..., min_length=3, max_length=2000)

class TranscriptSegmentHit(BaseModel):
    module_id: int
    segment_id: str
    text: str
    start_time: float
    end_time: float
    score: float

class AIAnswerResponse(BaseModel):
    answer: str
    sources: List[TranscriptSegmentHit] = []

class ChatInteractionDisplay(BaseModel):
    id: int
    course_id: int
    module_id: Optional[int] = None
    question: str
    answer: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class QuizGenerationRequest(BaseModel):
    num_questions: int = Field(5, ge=1, le=20)
    force_regenerate: bool = Field(False, description="Replace existing questions")
