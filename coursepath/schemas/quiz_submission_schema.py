from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from coursepath.schemas.user_progress_schema import CourseProgressSummaryDisplay

# --- Quiz Answer Schemas ---
class QuizAnswer(BaseModel):
    question_id: int = Field(..., description="ID of the question being answered")
    selected_option_id: Optional[str] = Field(None, description="ID of the selected option")

# --- Quiz Submission Schemas ---
class QuizSubmissionCreate(BaseModel):
    # course/module come from the path, the user from the token
    answers: List[QuizAnswer] = Field(..., description="Answers submitted by the user")
    time_spent_seconds: int = Field(0, ge=0)

# --- Quiz Result Schemas ---
class QuizSubmissionResultDisplay(BaseModel):
    quiz_result_id: int
    module_id: int
    correct: int = Field(..., ge=0, description="Number of correctly answered questions")
    total: int = Field(..., gt=0, description="Number of questions in the module")
    score: float = Field(..., ge=0, le=100)
    passed: bool
    feedback: Dict[int, bool] = Field(default_factory=dict, description="question_id -> answered correctly")
    course_progress: Optional[CourseProgressSummaryDisplay] = None

class QuizResultDisplay(BaseModel):
    id: int
    user_id: int
    module_id: int
    score: float
    passed: bool
    correct_count: int
    total_questions: int
    time_spent_seconds: int
    questions: List[Dict[str, Any]] = []
    answers: List[Dict[str, Any]] = []
    completed_at: datetime

    class Config:
        from_attributes = True
