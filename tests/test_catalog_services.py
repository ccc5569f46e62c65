from datetime import datetime, timedelta, timezone

import pytest

from conftest import result_of
from core.exceptions import ConflictError, PermissionDenied, RuleViolation
from core.security import hash_password
from models.branch import Branch
from models.course import Course
from models.enrollment import Enrollment
from models.semester import Semester
from models.user import User
from services.branch_service import BranchService
from services.course_service import CourseService, validate_course_fields
from services.enrollment_service import EnrollmentService
from services.semester_service import SemesterService
from services.user_service import UserService


def branch(**kw):
    return Branch(**{"id": 1, "name": "Computer Science", "code": "CSE", "description": "", "is_active": True, **kw})


def restricted_course(**kw):
    fields = dict(id=5, title="Algorithms", description="Sorting", visibility_type="optional",
                  branch_id=1, semester_id=2, created_by=3)
    fields.update(kw)
    return Course(**fields)


class TestUsers:
    @pytest.mark.asyncio
    async def test_signup_normalises_email(self, db):
        db.execute.return_value = result_of(None)
        user = await UserService(db).create_user(" Ann ", " Ann@Example.COM ", "secret123")
        assert user.email == "ann@example.com"
        assert user.name == "Ann"
        assert user.password_hash != "secret123"

    @pytest.mark.asyncio
    async def test_signup_duplicate_email(self, db, student):
        db.execute.return_value = result_of(student)
        with pytest.raises(ConflictError):
            await UserService(db).create_user("Ann", "student@example.com", "secret123")

    @pytest.mark.asyncio
    async def test_authenticate(self, db):
        user = User(id=9, name="Ann", email="ann@example.com", password_hash=hash_password("secret123"))
        db.execute.return_value = result_of(user)
        service = UserService(db)
        assert await service.authenticate("ann@example.com", "secret123") is user
        assert await service.authenticate("ann@example.com", "wrong") is None


class TestBranches:
    @pytest.mark.asyncio
    async def test_create_requires_unique_code(self, db):
        db.execute.side_effect = [result_of(None), result_of(branch())]
        with pytest.raises(ConflictError, match="code"):
            await BranchService(db).create_branch("Other", "CSE")

    @pytest.mark.asyncio
    async def test_create_requires_name(self, db):
        with pytest.raises(RuleViolation):
            await BranchService(db).create_branch("  ", "CSE")

    @pytest.mark.asyncio
    async def test_delete_blocked_by_semesters(self, db):
        db.execute.return_value = result_of(3)
        with pytest.raises(RuleViolation, match="associated semesters"):
            await BranchService(db).delete_branch(1)
        db.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_unknown_branch(self, db):
        db.execute.side_effect = [result_of(0), result_of(None)]
        assert await BranchService(db).delete_branch(1) is False


class TestSemesters:
    @pytest.mark.asyncio
    async def test_names_unique_within_branch(self, db):
        existing = Semester(id=2, name="Semester 1", branch_id=1, description="")
        db.execute.side_effect = [result_of(branch()), result_of(existing)]
        with pytest.raises(ConflictError):
            await SemesterService(db).create_semester("Semester 1", 1)

    @pytest.mark.asyncio
    async def test_unknown_branch(self, db):
        db.execute.return_value = result_of(None)
        with pytest.raises(RuleViolation, match="Branch not found"):
            await SemesterService(db).create_semester("Semester 1", 42)

    @pytest.mark.asyncio
    async def test_create(self, db):
        db.execute.side_effect = [result_of(branch()), result_of(None)]
        semester = await SemesterService(db).create_semester(" Semester 1 ", 1, "First")
        assert semester.name == "Semester 1"
        db.add.assert_called_once_with(semester)


class TestCourses:
    def test_mandatory_needs_deadline(self):
        with pytest.raises(RuleViolation, match="deadline"):
            validate_course_fields("mandatory", None, 1, 2)

    def test_restricted_needs_placement(self):
        with pytest.raises(RuleViolation, match="Branch and semester"):
            validate_course_fields("optional", None, 1, None)

    def test_public_needs_nothing(self):
        validate_course_fields("public", None, None, None)

    @pytest.mark.asyncio
    async def test_students_cannot_create(self, db, student):
        with pytest.raises(PermissionDenied):
            await CourseService(db).create_course(student, "T", "D")

    @pytest.mark.asyncio
    async def test_tutor_creates_mandatory_course(self, db, tutor):
        deadline = datetime.now(timezone.utc) + timedelta(days=30)
        course = await CourseService(db).create_course(tutor, "Algo", "Sorting", "mandatory", deadline, 1, 2)
        assert course.created_by == tutor.id
        assert course.deadline == deadline

    @pytest.mark.asyncio
    async def test_only_owner_or_admin_updates(self, db, tutor, admin):
        db.execute.return_value = result_of(restricted_course(created_by=99))
        with pytest.raises(PermissionDenied):
            await CourseService(db).update_course(5, tutor, title="New")

        course = await CourseService(db).update_course(5, admin, title=" New ")
        assert course.title == "New"


class TestEnrollments:
    @pytest.mark.asyncio
    async def test_enroll_matching_student(self, db, student):
        db.execute.side_effect = [result_of(restricted_course()), result_of(None)]
        enrollment = await EnrollmentService(db).enroll(student, 5)
        assert enrollment.is_enrolled
        db.add.assert_called_once_with(enrollment)

    @pytest.mark.asyncio
    async def test_enroll_wrong_semester(self, db, student):
        db.execute.side_effect = [result_of(restricted_course(semester_id=9)), result_of(None)]
        with pytest.raises(PermissionDenied, match="branch/semester"):
            await EnrollmentService(db).enroll(student, 5)

    @pytest.mark.asyncio
    async def test_enroll_twice(self, db, student):
        active = Enrollment(id=1, course_id=5, user_id=7, is_enrolled=True)
        db.execute.side_effect = [result_of(restricted_course()), result_of(active)]
        with pytest.raises(RuleViolation, match="already enrolled"):
            await EnrollmentService(db).enroll(student, 5)

    @pytest.mark.asyncio
    async def test_reenroll_reactivates(self, db, student):
        dropped = Enrollment(id=1, course_id=5, user_id=7, is_enrolled=False)
        db.execute.side_effect = [result_of(restricted_course()), result_of(dropped)]
        enrollment = await EnrollmentService(db).enroll(student, 5)
        assert enrollment is dropped and enrollment.is_enrolled
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_unenroll_is_soft(self, db):
        active = Enrollment(id=1, course_id=5, user_id=7, is_enrolled=True)
        db.execute.return_value = result_of(active)
        assert await EnrollmentService(db).unenroll(7, 5) is True
        assert active.is_enrolled is False
        assert await EnrollmentService(db).unenroll(7, 5) is False

    @pytest.mark.asyncio
    async def test_course_roster_owner_only(self, db, tutor):
        db.execute.return_value = result_of(restricted_course(created_by=99))
        with pytest.raises(PermissionDenied):
            await EnrollmentService(db).get_course_enrollments(5, tutor)
