"""
Catalog clients for the admin and authoring screens.

Every write follows the same flow: validate required fields locally,
POST or PUT, then refetch the list so the caller always renders server state.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from client.api import ApiClient
from client.exceptions import FieldValidationError
from schemas.catalog import (
    BranchIn, BranchOut, BranchWithSemesters, SemesterIn, SemesterOut, CourseIn, CourseOut,
    EnrollmentOut, EnrollmentStatus, CourseEnrollee,
)
from schemas.exam import ExamIn, ExamOut, ExamAttemptOut, UserExamItem


def require(data: Dict[str, Any], *fields: str):
    """Raise FieldValidationError for the first missing or blank field."""
    for field in fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            label = field.replace("_", " ").capitalize()
            raise FieldValidationError(field, f"{label} is required")


def build(model: Type[BaseModel], data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate against the request schema and return a JSON-ready body."""
    try:
        return model.model_validate(data).model_dump(mode="json")
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "body"
        raise FieldValidationError(field, error["msg"]) from e


class BranchClient(ApiClient):
    async def list(self) -> List[BranchOut]:
        return await self.request_list("GET", "/api/branches", BranchOut)

    async def list_with_semesters(self) -> List[BranchWithSemesters]:
        return await self.request_list("GET", "/api/branches/with-semesters", BranchWithSemesters)

    async def get(self, branch_id: int) -> BranchWithSemesters:
        return await self.request_one("GET", f"/api/branches/{branch_id}/with-semesters", BranchWithSemesters)

    async def save(self, data: Dict[str, Any], branch_id: Optional[int] = None) -> List[BranchOut]:
        require(data, "name", "code")
        body = build(BranchIn, data)
        if branch_id is None:
            await self.request_none("POST", "/api/branches", json=body)
        else:
            await self.request_none("PUT", f"/api/branches/{branch_id}", json=body)
        return await self.list()

    async def delete(self, branch_id: int) -> List[BranchOut]:
        await self.request_none("DELETE", f"/api/branches/{branch_id}")
        return await self.list()


class SemesterClient(ApiClient):
    async def list(self, branch_id: Optional[int] = None) -> List[SemesterOut]:
        params = {"branch_id": branch_id} if branch_id is not None else None
        return await self.request_list("GET", "/api/semesters", SemesterOut, params=params)

    async def by_branch(self, branch_id: int) -> List[SemesterOut]:
        return await self.request_list("GET", f"/api/semesters/by-branch/{branch_id}", SemesterOut)

    async def save(self, data: Dict[str, Any], semester_id: Optional[int] = None) -> List[SemesterOut]:
        require(data, "name", "branch_id")
        body = build(SemesterIn, data)
        if semester_id is None:
            await self.request_none("POST", "/api/semesters", json=body)
        else:
            await self.request_none("PUT", f"/api/semesters/{semester_id}", json=body)
        return await self.list()

    async def delete(self, semester_id: int) -> List[SemesterOut]:
        await self.request_none("DELETE", f"/api/semesters/{semester_id}")
        return await self.list()


class CourseClient(ApiClient):
    async def list(self) -> List[CourseOut]:
        return await self.request_list("GET", "/api/courses", CourseOut)

    async def get(self, course_id: int) -> CourseOut:
        return await self.request_one("GET", f"/api/courses/{course_id}", CourseOut)

    async def save(self, data: Dict[str, Any], course_id: Optional[int] = None) -> List[CourseOut]:
        require(data, "title", "description")
        visibility = data.get("visibility_type", "public")
        if visibility == "mandatory":
            require(data, "deadline")
        if visibility != "public":
            require(data, "branch_id", "semester_id")
        body = build(CourseIn, data)
        if course_id is None:
            await self.request_none("POST", "/api/courses", json=body)
        else:
            await self.request_none("PUT", f"/api/courses/{course_id}", json=body)
        return await self.list()

    async def delete(self, course_id: int) -> List[CourseOut]:
        await self.request_none("DELETE", f"/api/courses/{course_id}")
        return await self.list()


class EnrollmentClient(ApiClient):
    async def list(self) -> List[EnrollmentOut]:
        return await self.request_list("GET", "/api/enrollments/user", EnrollmentOut)

    async def status(self, course_id: int) -> EnrollmentStatus:
        return await self.request_one("GET", f"/api/enrollments/status/{course_id}", EnrollmentStatus)

    async def enroll(self, course_id: int) -> List[EnrollmentOut]:
        if not course_id:
            raise FieldValidationError("course_id", "Course id is required")
        await self.request_none("POST", "/api/enrollments/enroll", json={"course_id": course_id})
        return await self.list()

    async def unenroll(self, course_id: int) -> List[EnrollmentOut]:
        await self.request_none("DELETE", f"/api/enrollments/{course_id}")
        return await self.list()

    async def course_students(self, course_id: int) -> List[CourseEnrollee]:
        return await self.request_list("GET", f"/api/enrollments/course/{course_id}", CourseEnrollee)


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def validate_exam(data: Dict[str, Any]):
    """Local checks run by the exam authoring wizard before saving."""
    require(data, "title", "course_id", "start_time", "end_time", "duration")
    if _as_datetime(data["start_time"]) >= _as_datetime(data["end_time"]):
        raise FieldValidationError("end_time", "End time must be after start time")
    if data["duration"] <= 0:
        raise FieldValidationError("duration", "Duration must be a positive number")

    for s, section in enumerate(data.get("sections") or []):
        where = f"sections.{s}"
        require(section, "title")
        for q, question in enumerate(section.get("questions") or []):
            field = f"{where}.questions.{q}"
            if not (question.get("question") or "").strip():
                raise FieldValidationError(f"{field}.question", "Question text is required")
            if question.get("type") == "mcq":
                options = question.get("options") or []
                if len(options) < 2:
                    raise FieldValidationError(f"{field}.options", "MCQ questions must have at least 2 options")
                correct = question.get("correct_option")
                if correct is None or not 0 <= correct < len(options):
                    raise FieldValidationError(f"{field}.correct_option", "Select the correct option")
            if (question.get("marks") or 0) <= 0:
                raise FieldValidationError(f"{field}.marks", "Marks must be greater than 0")


class ExamClient(ApiClient):
    async def list_for_course(self, course_id: int) -> List[ExamOut]:
        return await self.request_list("GET", f"/api/exams/course/{course_id}", ExamOut)

    async def dashboard(self) -> List[UserExamItem]:
        return await self.request_list("GET", "/api/exams/user/exams", UserExamItem)

    async def get(self, exam_id: int) -> ExamOut:
        return await self.request_one("GET", f"/api/exams/{exam_id}", ExamOut)

    async def save(self, data: Dict[str, Any], exam_id: Optional[int] = None) -> List[ExamOut]:
        validate_exam(data)
        body = build(ExamIn, data)
        if exam_id is None:
            await self.request_none("POST", "/api/exams", json=body)
        else:
            await self.request_none("PUT", f"/api/exams/{exam_id}", json=body)
        return await self.list_for_course(data["course_id"])

    async def set_published(self, exam_id: int, is_published: bool) -> ExamOut:
        return await self.request_one("PATCH", f"/api/exams/{exam_id}/publish", ExamOut,
                                      json={"is_published": is_published})

    async def delete(self, exam_id: int, course_id: int) -> List[ExamOut]:
        await self.request_none("DELETE", f"/api/exams/{exam_id}")
        return await self.list_for_course(course_id)

    async def attempts(self, exam_id: int) -> List[ExamAttemptOut]:
        return await self.request_list("GET", f"/api/exams/{exam_id}/attempts", ExamAttemptOut)

    async def my_attempts(self) -> List[ExamAttemptOut]:
        return await self.request_list("GET", "/api/exams/my/attempts", ExamAttemptOut)
