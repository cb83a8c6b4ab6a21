from sqlalchemy import Column, Integer, Float, Boolean, TIMESTAMP, ForeignKey, JSON
from sqlalchemy.orm import relationship

from coursepath.core.database import Base

class QuizResult(Base):
    """One graded quiz attempt. Rows are never updated after insert."""
    __tablename__ = "quiz_results"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    module_id = Column(Integer, ForeignKey("course_modules.id", ondelete="CASCADE"), nullable=False, index=True)

    score = Column(Float, nullable=False) # 0-100
    passed = Column(Boolean, nullable=False, index=True)
    correct_count = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    time_spent_seconds = Column(Integer, nullable=False, default=0)

    # Snapshot of the question set and submitted answers at grading time
    questions = Column(JSON, nullable=False, default=list)
    answers = Column(JSON, nullable=False, default=list)

    completed_at = Column(TIMESTAMP(timezone=True), nullable=False)

    user = relationship("User", back_populates="quiz_results")
    module = relationship("CourseModule", back_populates="quiz_results")

    def __repr__(self):
        return f"<QuizResult(id={self.id}, user_id={self.user_id}, module_id={self.module_id}, score={self.score}, passed={self.passed})>"
