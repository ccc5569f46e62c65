from sqlalchemy import Column, Integer, String, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin

class Semester(Base, TimestampMixin):
    __tablename__ = "semesters"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    # Non-unique on purpose: several semesters share a branch
    branch_id = Column(Integer, ForeignKey("branches.id"), index=True, nullable=False)
    description = Column(Text, default="", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    branch = relationship("Branch", lazy="joined")
