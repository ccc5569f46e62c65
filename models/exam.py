from sqlalchemy import Column, Integer, String, Text, JSON, Boolean, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin

QUESTION_TYPES = ("mcq", "subjective")
ATTEMPT_STATUSES = ("in-progress", "submitted", "timed-out", "graded")
FINISHED_STATUSES = ("submitted", "timed-out", "graded")

class Exam(Base, TimestampMixin):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, default="", nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), index=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    duration = Column(Integer, nullable=False)  # minutes
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    negative_marking = Column(Boolean, default=False, nullable=False)
    passing_marks = Column(Integer, default=0, nullable=False)
    instructions = Column(Text, default="", nullable=False)

    # [{id, title, description, total_marks, questions: [{id, type, question, options, correct_option, marks, negative_marks}]}]
    sections = Column(JSON, nullable=False, default=list)
    total_marks = Column(Float, default=0.0, nullable=False)

    course = relationship("Course", lazy="joined")


class ExamAttempt(Base, TimestampMixin):
    __tablename__ = "exam_attempts"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)

    start_time = Column(DateTime(timezone=True), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes, copied from the exam
    time_remaining = Column(Integer, nullable=False)  # seconds
    status = Column(String(20), default="in-progress", index=True, nullable=False)

    # [{question_id, answer, selected_option, marks_awarded, is_graded, feedback}]
    answers = Column(JSON, nullable=False, default=list)
    total_marks = Column(Float, default=0.0, nullable=False)
    total_marks_awarded = Column(Float, default=0.0, nullable=False)
    percentage = Column(Float, default=0.0, nullable=False)
    is_graded = Column(Boolean, default=False, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)

    exam = relationship("Exam", lazy="joined")
