from sqlalchemy import Column, Integer, String, JSON, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from models.base import Base

DIFFICULTIES = ("easy", "medium", "hard")

class Practice(Base):
    __tablename__ = "practices"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(255), nullable=False)
    difficulty = Column(String(10), default="medium", nullable=False)
    number_of_questions = Column(Integer, nullable=False)

    start_time = Column(DateTime(timezone=True), nullable=True)
    time_limit = Column(Integer, nullable=False)  # seconds
    time_remaining = Column(Integer, nullable=False)  # seconds, last value synced by the client

    # [{id, question, options, correct_answer, user_answer, is_correct}]
    questions = Column(JSON, nullable=False)
    correct_answers = Column(Integer, default=0, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    course = relationship("Course", lazy="joined")
