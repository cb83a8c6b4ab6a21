from pydantic import BaseModel, Field
from typing import List, Optional

from coursepath.schemas.course_schema import CourseDisplay

class ModuleProgressUpdate(BaseModel):
    progress: float = Field(..., ge=0, le=100, description="Percent of the module the learner has consumed")

class UserCourseProgressDisplay(BaseModel):
    # id is None for the default zero-state of a learner who never enrolled
    id: Optional[int] = None
    user_id: int
    course_id: int
    current_module_id: Optional[int] = None
    current_module_order: int = 1
    progress: int = Field(0, ge=0, le=100)
    completed: bool = False

    class Config:
        from_attributes = True

class CourseProgressSummaryDisplay(BaseModel):
    total_modules: int
    completed_count: int
    progress_percent: int
    all_completed: bool
    completed_module_ids: List[int] = []
    missing_module_ids: List[int] = []

class ModuleCompletionReset(BaseModel):
    user_id: int = Field(..., description="Learner whose completion is cleared")

class EnrolledCourseDisplay(CourseDisplay):
    progress: int = 0
    completed: bool = False
    current_module_id: Optional[int] = None
