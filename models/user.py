from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from models.base import Base, TimestampMixin

class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_tutor = Column(Boolean, default=False, nullable=False)

    # Students are placed in a branch/semester, which drives course visibility
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True)
    semester_id = Column(Integer, ForeignKey("semesters.id", ondelete="SET NULL", name="users_semester_id_fkey"), nullable=True)

    @property
    def is_student(self) -> bool:
        return not (self.is_admin or self.is_tutor)
