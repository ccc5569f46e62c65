from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from models.base import Base

class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("course_id", "user_id", name="uq_enrollments_course_user"),)

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    is_enrolled = Column(Boolean, default=True, nullable=False)
    enrollment_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    progress = Column(Integer, default=0, nullable=False)  # 0-100
    last_accessed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    course = relationship("Course", lazy="joined")
    user = relationship("User", lazy="joined")
