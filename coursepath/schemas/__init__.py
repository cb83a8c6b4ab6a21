# This file makes the 'schemas' directory a Python package.

from .user_schema import (
    UserBase, UserCreateInternal, UserDisplay, TokenData, UserRegisterRequest, AuthResponse,
    AdminUserUpdate, PaginatedUsers
)

from .course_schema import (
    CourseBase, CourseCreate, CourseUpdate, CourseDisplay, CourseDetailDisplay,
    CourseModuleBase, CourseModuleCreate, CourseModuleUpdate, CourseModuleDisplay,
    QuizOption, QuizQuestionCreate, QuizQuestionsCreate, QuizQuestionPublic, QuizQuestionDisplay,
    TranscriptSegment, ModuleTranscriptionUpsert, ModuleTranscriptionDisplay,
    CourseMaterialCreate, CourseMaterialUpdate, CourseMaterialDisplay
)

from .user_progress_schema import (
    ModuleProgressUpdate, UserCourseProgressDisplay, CourseProgressSummaryDisplay,
    ModuleCompletionReset, EnrolledCourseDisplay
)

from .quiz_submission_schema import (
    QuizAnswer, QuizSubmissionCreate, QuizSubmissionResultDisplay, QuizResultDisplay
)

from .certificate_schema import CertificateCreate, CertificateDisplay

from .ai_schema import (
    AIQuestionRequest, TranscriptSegmentHit, AIAnswerResponse, ChatInteractionDisplay, QuizGenerationRequest
)

from .job_schema import BackgroundJobDisplay


__all__ = [
    # User Schemas
    "UserBase", "UserCreateInternal", "UserDisplay", "TokenData", "UserRegisterRequest", "AuthResponse",
    "AdminUserUpdate", "PaginatedUsers",

    # Course Schemas
    "CourseBase", "CourseCreate", "CourseUpdate", "CourseDisplay", "CourseDetailDisplay",
    "CourseModuleBase", "CourseModuleCreate", "CourseModuleUpdate", "CourseModuleDisplay",
    "QuizOption", "QuizQuestionCreate", "QuizQuestionsCreate", "QuizQuestionPublic", "QuizQuestionDisplay",
    "TranscriptSegment", "ModuleTranscriptionUpsert", "ModuleTranscriptionDisplay",
    "CourseMaterialCreate", "CourseMaterialUpdate", "CourseMaterialDisplay",

    # Progress Schemas
    "ModuleProgressUpdate", "UserCourseProgressDisplay", "CourseProgressSummaryDisplay",
    "ModuleCompletionReset", "EnrolledCourseDisplay",

    # Quiz Submission Schemas
    "QuizAnswer", "QuizSubmissionCreate", "QuizSubmissionResultDisplay", "QuizResultDisplay",

    # Certificate Schemas
    "CertificateCreate", "CertificateDisplay",

    # AI Schemas
    "AIQuestionRequest", "TranscriptSegmentHit", "AIAnswerResponse", "ChatInteractionDisplay", "QuizGenerationRequest",

    # Job Schemas
    "BackgroundJobDisplay",
]
