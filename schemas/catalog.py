from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

VisibilityType = Literal["public", "mandatory", "optional"]


class BranchIn(BaseModel):
    """Request body for creating or updating a branch."""
    name: str = Field(..., min_length=1, max_length=255, examples=["Computer Science"])
    code: str = Field(..., min_length=1, max_length=50, examples=["CSE"])
    description: str = ""
    is_active: bool = True


class BranchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str
    description: str = ""
    is_active: bool = True
    created_at: Optional[datetime] = None


class SemesterIn(BaseModel):
    """Request body for creating or updating a semester."""
    name: str = Field(..., min_length=1, max_length=255, examples=["Semester 3"])
    branch_id: int
    description: str = ""
    is_active: bool = True


class SemesterOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    branch_id: int
    branch_name: Optional[str] = None
    description: str = ""
    is_active: bool = True


class BranchWithSemesters(BranchOut):
    semesters: List[SemesterOut] = Field(default_factory=list)


class CourseIn(BaseModel):
    """Request body for creating or updating a course."""
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    visibility_type: VisibilityType = "public"
    deadline: Optional[datetime] = None
    branch_id: Optional[int] = None
    semester_id: Optional[int] = None


class CourseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    visibility_type: VisibilityType = "public"
    deadline: Optional[datetime] = None
    branch_id: Optional[int] = None
    semester_id: Optional[int] = None
    created_by: int


class EnrollRequest(BaseModel):
    course_id: int


class EnrollmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    user_id: int
    is_enrolled: bool
    enrollment_date: datetime
    progress: int = 0
    last_accessed_at: Optional[datetime] = None
    course: Optional[CourseOut] = None


class EnrollmentStatus(BaseModel):
    is_enrolled: bool
    enrollment_date: Optional[datetime] = None
    progress: Optional[int] = None
    last_accessed_at: Optional[datetime] = None


class CourseEnrollee(BaseModel):
    """A student enrolled in a course, as seen by the course creator."""
    enrollment_id: int
    user_id: int
    name: str
    email: str
    enrollment_date: datetime
    progress: int = 0
