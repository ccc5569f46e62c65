from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.course import Course, VISIBILITY_TYPES
from models.enrollment import Enrollment
from models.user import User
from core.exceptions import PermissionDenied, RuleViolation
from core.logger import logger


def validate_course_fields(visibility_type: str, deadline: Optional[datetime],
                           branch_id: Optional[int], semester_id: Optional[int]):
    """Visibility rules shared by create and update."""
    if visibility_type not in VISIBILITY_TYPES:
        raise RuleViolation(f"Unknown visibility type: {visibility_type}")
    if visibility_type == "mandatory" and deadline is None:
        raise RuleViolation("Please set a deadline for mandatory courses")
    if visibility_type != "public" and (branch_id is None or semester_id is None):
        raise RuleViolation("Branch and semester are required for mandatory and optional courses")


class CourseService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_courses(self) -> List[Course]:
        result = await self.db.execute(select(Course).order_by(Course.created_at.desc()))
        return list(result.scalars().all())

    async def get_course(self, course_id: int) -> Optional[Course]:
        result = await self.db.execute(select(Course).filter(Course.id == course_id))
        return result.scalar_one_or_none()

    async def get_enrolled_courses(self, user_id: int) -> List[Course]:
        result = await self.db.execute(
            select(Course)
            .join(Enrollment, Enrollment.course_id == Course.id)
            .filter(Enrollment.user_id == user_id, Enrollment.is_enrolled == True)
            .order_by(Course.title)
        )
        return list(result.scalars().all())

    async def create_course(self, user: User, title: str, description: str, visibility_type: str = "public",
                            deadline: Optional[datetime] = None, branch_id: Optional[int] = None,
                            semester_id: Optional[int] = None) -> Course:
        if not (user.is_admin or user.is_tutor):
            raise PermissionDenied("Access denied. Admin or tutor role required.")
        validate_course_fields(visibility_type, deadline, branch_id, semester_id)

        course = Course(
            title=title.strip(),
            description=description.strip(),
            visibility_type=visibility_type,
            deadline=deadline,
            branch_id=branch_id,
            semester_id=semester_id,
            created_by=user.id,
        )
        self.db.add(course)
        await self.db.commit()
        await self.db.refresh(course)
        logger.info("Course created", course_id=course.id, user_id=user.id, visibility=visibility_type)
        return course

    def _check_owner(self, course: Course, user: User):
        if not user.is_admin and course.created_by != user.id:
            raise PermissionDenied("Access denied. You can only manage resources you created.")

    async def update_course(self, course_id: int, user: User, **fields) -> Optional[Course]:
        course = await self.get_course(course_id)
        if not course:
            return None
        self._check_owner(course, user)

        validate_course_fields(
            fields.get("visibility_type", course.visibility_type),
            fields.get("deadline", course.deadline),
            fields.get("branch_id", course.branch_id),
            fields.get("semester_id", course.semester_id),
        )
        for key, value in fields.items():
            if hasattr(course, key):
                setattr(course, key, value.strip() if isinstance(value, str) and key in ("title", "description") else value)
        await self.db.commit()
        await self.db.refresh(course)
        logger.info("Course updated", course_id=course_id, user_id=user.id)
        return course

    async def delete_course(self, course_id: int, user: User) -> bool:
        course = await self.get_course(course_id)
        if not course:
            return False
        self._check_owner(course, user)
        await self.db.delete(course)
        await self.db.commit()
        logger.info("Course deleted", course_id=course_id, user_id=user.id)
        return True
