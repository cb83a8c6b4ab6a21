from sqlalchemy import Column, Integer, Boolean, TIMESTAMP, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from coursepath.core.database import Base

class ModuleCompletion(Base):
    __tablename__ = "module_completions"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    module_id = Column(Integer, ForeignKey("course_modules.id", ondelete="CASCADE"), primary_key=True, index=True)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(TIMESTAMP(timezone=True), nullable=True) # Cleared when un-completed

    user = relationship("User", back_populates="module_completions")
    module = relationship("CourseModule", back_populates="completions")

    def __repr__(self):
        return f"<ModuleCompletion(user_id={self.user_id}, module_id={self.module_id}, completed={self.completed})>"

class UserCourseProgress(Base):
    """A learner's enrollment in a course, with the cached aggregate progress."""
    __tablename__ = "user_course_progress"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    current_module_id = Column(Integer, ForeignKey("course_modules.id", ondelete="SET NULL"), nullable=True)
    current_module_order = Column(Integer, nullable=False, default=1)
    progress = Column(Integer, nullable=False, default=0) # 0-100
    completed = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="enrollments")
    course = relationship("Course", back_populates="enrollments")
    current_module = relationship("CourseModule")

    __table_args__ = (
        UniqueConstraint('user_id', 'course_id', name='uq_user_course_progress'),
    )

    def __repr__(self):
        return f"<UserCourseProgress(id={self.id}, user_id={self.user_id}, course_id={self.course_id}, progress={self.progress}, completed={self.completed})>"
