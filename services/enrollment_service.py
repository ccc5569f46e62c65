from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.course import Course
from models.enrollment import Enrollment
from models.user import User
from core.exceptions import PermissionDenied, RuleViolation
from core.logger import logger


def check_visibility(course: Course, user: User):
    """
    Raise if the user may not enroll in the course.
    Public courses are open to everyone; mandatory and optional courses
    only to students of the matching branch and semester.
    """
    if course.visibility_type == "public" or not user.is_student:
        return
    if course.branch_id != user.branch_id or course.semester_id != user.semester_id:
        raise PermissionDenied("You cannot enroll in this course as it is not for your branch/semester")


class EnrollmentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_enrollment(self, user_id: int, course_id: int) -> Optional[Enrollment]:
        result = await self.db.execute(
            select(Enrollment).filter(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
        )
        return result.scalar_one_or_none()

    async def is_enrolled(self, user_id: int, course_id: int) -> bool:
        enrollment = await self.get_enrollment(user_id, course_id)
        return bool(enrollment and enrollment.is_enrolled)

    async def enroll(self, user: User, course_id: int) -> Optional[Enrollment]:
        result = await self.db.execute(select(Course).filter(Course.id == course_id))
        course = result.scalar_one_or_none()
        if not course:
            return None

        enrollment = await self.get_enrollment(user.id, course_id)
        if enrollment and enrollment.is_enrolled:
            raise RuleViolation("You are already enrolled in this course")

        check_visibility(course, user)

        now = datetime.now(timezone.utc)
        if enrollment:
            # Re-activate a previous (soft-deleted) enrollment
            enrollment.is_enrolled = True
            enrollment.enrollment_date = now
            enrollment.last_accessed_at = now
        else:
            enrollment = Enrollment(course_id=course_id, user_id=user.id, is_enrolled=True,
                                    enrollment_date=now, last_accessed_at=now)
            self.db.add(enrollment)

        await self.db.commit()
        await self.db.refresh(enrollment)
        logger.info("User enrolled", user_id=user.id, course_id=course_id)
        return enrollment

    async def get_user_enrollments(self, user_id: int) -> List[Enrollment]:
        result = await self.db.execute(
            select(Enrollment)
            .filter(Enrollment.user_id == user_id, Enrollment.is_enrolled == True)
            .order_by(Enrollment.enrollment_date.desc())
        )
        return list(result.scalars().all())

    async def get_course_enrollments(self, course_id: int, user: User) -> Optional[List[Enrollment]]:
        result = await self.db.execute(select(Course).filter(Course.id == course_id))
        course = result.scalar_one_or_none()
        if not course:
            return None
        if course.created_by != user.id and not user.is_admin:
            raise PermissionDenied("Not authorized to view enrollments for this course")

        result = await self.db.execute(
            select(Enrollment).filter(Enrollment.course_id == course_id, Enrollment.is_enrolled == True)
        )
        return list(result.scalars().all())

    async def unenroll(self, user_id: int, course_id: int) -> bool:
        enrollment = await self.get_enrollment(user_id, course_id)
        if not enrollment or not enrollment.is_enrolled:
            return False
        enrollment.is_enrolled = False
        await self.db.commit()
        logger.info("User unenrolled", user_id=user_id, course_id=course_id)
        return True
