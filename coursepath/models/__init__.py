# This file makes the 'models' directory a Python package.

from coursepath.core.database import Base # Base must be imported before models that use it

from .enums import UserRole, CourseStatus, JobType, JobStatus

from .user_model import User
from .course_model import (
    Course,
    CourseModule,
    QuizQuestion,
    ModuleTranscription,
    TranscriptSegment,
    CourseMaterial,
)
from .user_progress_model import ModuleCompletion, UserCourseProgress
from .quiz_result_model import QuizResult
from .certificate_model import Certificate
from .chat_model import ChatInteraction
from .job_model import BackgroundJob


__all__ = [
    "Base",
    # Models
    "User",
    "Course",
    "CourseModule",
    "QuizQuestion",
    "ModuleTranscription",
    "TranscriptSegment",
    "CourseMaterial",
    "ModuleCompletion",
    "UserCourseProgress",
    "QuizResult",
    "Certificate",
    "ChatInteraction",
    "BackgroundJob",
    # Enums
    "UserRole",
    "CourseStatus",
    "JobType",
    "JobStatus",
]
