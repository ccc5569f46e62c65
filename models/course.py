from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from models.base import Base, TimestampMixin

VISIBILITY_TYPES = ("public", "mandatory", "optional")

class Course(Base, TimestampMixin):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    visibility_type = Column(String(20), default="public", nullable=False)
    deadline = Column(DateTime(timezone=True), nullable=True)
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True)
    semester_id = Column(Integer, ForeignKey("semesters.id", ondelete="SET NULL", name="courses_semester_id_fkey"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
