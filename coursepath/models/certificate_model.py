from sqlalchemy import Column, Integer, String, TIMESTAMP, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from coursepath.core.database import Base

class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)

    course_name = Column(String(255), nullable=False) # Title at issue time
    issued_date = Column(TIMESTAMP(timezone=True), nullable=False)
    credential_id = Column(String(64), unique=True, nullable=False, index=True)
    thumbnail_url = Column(String(500), nullable=True)

    # Relationships
    user = relationship("User", back_populates="certificates")
    course = relationship("Course", back_populates="issued_certificates")

    __table_args__ = (
        UniqueConstraint('user_id', 'course_id', name='uq_user_course_certificate'), # User gets one certificate per course
    )

    def __repr__(self):
        return f"<Certificate(id={self.id}, user_id={self.user_id}, course_id={self.course_id}, credential='{self.credential_id}')>"
