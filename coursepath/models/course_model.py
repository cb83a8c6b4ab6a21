from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Float, ForeignKey, TIMESTAMP, JSON,
    Enum as SAEnum, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pgvector.sqlalchemy import Vector

from coursepath.core.config import settings
from coursepath.core.database import Base
from coursepath.models.enums import CourseStatus

class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)

    status = Column(
        SAEnum(CourseStatus, name="course_status_enum", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=CourseStatus.ACTIVE,
        index=True,
    )
    archived_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    # Relationships; purging a course removes everything hanging off it
    modules = relationship("CourseModule", back_populates="course", cascade="all, delete-orphan", order_by="CourseModule.module_order")
    enrollments = relationship("UserCourseProgress", back_populates="course", cascade="all, delete-orphan")
    issued_certificates = relationship("Certificate", back_populates="course", cascade="all, delete-orphan")
    chat_interactions = relationship("ChatInteraction", back_populates="course", cascade="all, delete-orphan")
    materials = relationship("CourseMaterial", back_populates="course", cascade="all, delete-orphan", order_by="CourseMaterial.id")

    @property
    def module_count(self) -> int:
        return len(self.modules)

    @property
    def is_active(self) -> bool:
        return self.status == CourseStatus.ACTIVE

    def __repr__(self):
        return f"<Course(id={self.id}, title='{self.title}', status='{self.status}')>"

class CourseModule(Base):
    __tablename__ = "course_modules"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    module_order = Column(Integer, nullable=False, default=1) # Sequence within the course
    video_url = Column(String(500), nullable=True)
    duration = Column(String(50), nullable=True)
    has_quiz = Column(Boolean, default=False, nullable=False)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    # Relationships
    course = relationship("Course", back_populates="modules")
    quiz_questions = relationship("QuizQuestion", back_populates="module", cascade="all, delete-orphan", order_by="QuizQuestion.question_order")
    completions = relationship("ModuleCompletion", back_populates="module", cascade="all, delete-orphan")
    quiz_results = relationship("QuizResult", back_populates="module", cascade="all, delete-orphan")
    transcription = relationship("ModuleTranscription", back_populates="module", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (UniqueConstraint('course_id', 'module_order', name='uq_course_module_order'),)

    def __repr__(self):
        return f"<CourseModule(id={self.id}, title='{self.title}', course_id={self.course_id}, order={self.module_order})>"

class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True, index=True)
    module_id = Column(Integer, ForeignKey("course_modules.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    # Ordered list of {"id": str, "text": str}
    options = Column(JSON, nullable=False, default=list)
    correct_option_id = Column(String(64), nullable=False)
    question_order = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    module = relationship("CourseModule", back_populates="quiz_questions")

    def __repr__(self):
        return f"<QuizQuestion(id={self.id}, module_id={self.module_id})>"

class ModuleTranscription(Base):
    __tablename__ = "module_transcriptions"

    id = Column(Integer, primary_key=True, index=True)
    module_id = Column(Integer, ForeignKey("course_modules.id", ondelete="CASCADE"), unique=True, nullable=False)
    video_id = Column(String(64), nullable=True)
    text = Column(Text, nullable=False)
    indexed_at = Column(TIMESTAMP(timezone=True), nullable=True)

    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    module = relationship("CourseModule", back_populates="transcription")
    segments = relationship(
        "TranscriptSegment",
        back_populates="transcription",
        cascade="all, delete-orphan",
        order_by="TranscriptSegment.segment_index",
    )

    @property
    def segment_count(self) -> int:
        return len(self.segments)

    def __repr__(self):
        return f"<ModuleTranscription(id={self.id}, module_id={self.module_id})>"

class TranscriptSegment(Base):
    """One timestamped piece of a transcript; the unit the AI assistant searches."""
    __tablename__ = "transcript_segments"

    id = Column(Integer, primary_key=True, index=True)
    transcription_id = Column(Integer, ForeignKey("module_transcriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    # Denormalized so course/module scoped searches need no extra join
    module_id = Column(Integer, ForeignKey("course_modules.id", ondelete="CASCADE"), nullable=False, index=True)
    segment_index = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    start_time = Column(Float, nullable=False)
    end_time = Column(Float, nullable=False)
    embedding = Column(Vector(settings.EMBEDDING_DIMENSIONS), nullable=True) # NULL until indexed with an API key

    transcription = relationship("ModuleTranscription", back_populates="segments")

    __table_args__ = (UniqueConstraint('transcription_id', 'segment_index', name='uq_transcript_segment_index'),)

    @property
    def segment_key(self) -> str:
        return f"{self.module_id}-{self.segment_index}"

    def __repr__(self):
        return f"<TranscriptSegment(id={self.id}, module_id={self.module_id}, index={self.segment_index})>"

class CourseMaterial(Base):
    """Downloadable or linked resource attached to a course (slides, handouts, reading)."""
    __tablename__ = "course_materials"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    material_type = Column(String(50), nullable=False) # pdf, slides, link, ...
    url = Column(String(500), nullable=False)
    file_size = Column(String(50), nullable=True) # Display string, e.g. "2.4 MB"

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    course = relationship("Course", back_populates="materials")

    def __repr__(self):
        return f"<CourseMaterial(id={self.id}, course_id={self.course_id}, title='{self.title}')>"
