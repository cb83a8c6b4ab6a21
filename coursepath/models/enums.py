import enum

class UserRole(str, enum.Enum):
    LEARNER = "Learner"
    ADMIN = "Admin"
    SERVICE = "Service" # Background jobs act as this account

class CourseStatus(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived" # Hidden from learners; can be restored or purged

class JobType(str, enum.Enum):
    TRANSCRIPT_INDEXING = "transcript_indexing"
    QUIZ_GENERATION = "quiz_generation"

class JobStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

# Enum columns store the string values (values_callable), so SQLite and
# Postgres both end up with VARCHAR-compatible columns.
