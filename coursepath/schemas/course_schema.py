from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime

from coursepath.models.enums import CourseStatus

# --- Quiz Question Schemas ---
class QuizOption(BaseModel):
    id: str = Field(..., min_length=1, max_length=64, description="Option identifier, unique within its question")
    text: str = Field(..., min_length=1, max_length=500)

class QuizQuestionBase(BaseModel):
    text: str = Field(..., min_length=3, description="The text of the question")
    options: List[QuizOption] = Field(..., min_length=2, description="Ordered answer options")

class QuizQuestionCreate(QuizQuestionBase):
    correct_option_id: str = Field(..., description="ID of the correct option; must match one of the options")
    question_order: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_correct_option(self):
        option_ids = [opt.id for opt in self.options]
        if len(set(option_ids)) != len(option_ids):
            raise ValueError("Option ids must be unique within a question")
        if self.correct_option_id not in option_ids:
            raise ValueError("correct_option_id must reference one of the options")
        return self

class QuizQuestionsCreate(BaseModel):
    questions: List[QuizQuestionCreate] = Field(..., min_length=1)

# Learner-facing: no correct answer
class QuizQuestionPublic(QuizQuestionBase):
    id: int
    module_id: int
    question_order: int

    class Config:
        from_attributes = True

class QuizQuestionDisplay(QuizQuestionPublic):
    correct_option_id: str

def _reject_explicit_nulls(model: BaseModel, fields) -> None:
    # Omitting a field leaves it unchanged; sending null for it is an error
    for field in fields:
        if field in model.model_fields_set and getattr(model, field) is None:
            raise ValueError(f"{field} cannot be null")

# --- CourseModule Schemas ---
class CourseModuleBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=255, description="Title of the module")
    description: Optional[str] = Field(None, description="What the module covers")
    module_order: int = Field(..., ge=1, description="Position of the module within the course")
    video_url: Optional[str] = Field(None, max_length=500, description="Video location (YouTube or direct link)")
    duration: Optional[str] = Field(None, max_length=50)

class CourseModuleCreate(CourseModuleBase):
    pass

class CourseModuleUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    module_order: Optional[int] = Field(None, ge=1)
    video_url: Optional[str] = Field(None, max_length=500)
    duration: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def check_required_not_null(self):
        _reject_explicit_nulls(self, ("title", "module_order"))
        return self

class CourseModuleDisplay(CourseModuleBase):
    id: int
    course_id: int
    has_quiz: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# --- Course Schemas ---
class CourseBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=255, description="Title of the course")
    description: Optional[str] = Field(None, description="Detailed description of the course")
    image_url: Optional[str] = Field(None, max_length=500)

class CourseCreate(CourseBase):
    # Modules are added via the module endpoints
    pass

class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_title_not_null(self):
        _reject_explicit_nulls(self, ("title",))
        return self

class CourseDisplay(CourseBase):
    id: int
    status: CourseStatus
    module_count: int = 0
    archived_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class CourseDetailDisplay(CourseDisplay):
    modules: List[CourseModuleDisplay] = []

# --- Transcription Schemas ---
class TranscriptSegment(BaseModel):
    text: str = Field(..., min_length=1)
    start_time: float = Field(..., ge=0, description="Segment start, seconds")
    end_time: float = Field(..., ge=0, description="Segment end, seconds")

    @model_validator(mode="after")
    def check_bounds(self):
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self

class ModuleTranscriptionUpsert(BaseModel):
    video_id: Optional[str] = Field(None, max_length=64)
    segments: List[TranscriptSegment] = Field(..., min_length=1)

class ModuleTranscriptionDisplay(BaseModel):
    id: int
    module_id: int
    video_id: Optional[str] = None
    text: str
    segment_count: int
    indexed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# --- Course Material Schemas ---
class CourseMaterialBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    material_type: str = Field(..., min_length=1, max_length=50, description="pdf, slides, link, ...")
    url: str = Field(..., min_length=1, max_length=500)
    file_size: Optional[str] = Field(None, max_length=50, description="Human-readable size, e.g. '2.4 MB'")

class CourseMaterialCreate(CourseMaterialBase):
    pass

class CourseMaterialUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    material_type: Optional[str] = Field(None, min_length=1, max_length=50)
    url: Optional[str] = Field(None, min_length=1, max_length=500)
    file_size: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def check_required_not_null(self):
        _reject_explicit_nulls(self, ("title", "material_type", "url"))
        return self

class CourseMaterialDisplay(CourseMaterialBase):
    id: int
    course_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
