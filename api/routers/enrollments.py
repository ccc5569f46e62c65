from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user
from db.session import get_db
from models.user import User
from schemas.auth import MessageResponse
from schemas.catalog import EnrollRequest, EnrollmentOut, EnrollmentStatus, CourseEnrollee
from services.enrollment_service import EnrollmentService

router = APIRouter(prefix="/api/enrollments", tags=["enrollments"])


@router.post(
    "/enroll",
    response_model=EnrollmentOut,
    status_code=201,
    summary="Enroll in a course",
    responses={
        400: {"description": "Already enrolled"},
        403: {"description": "Course not visible to the user's branch/semester"},
        404: {"description": "Course not found"},
    },
)
async def enroll(body: EnrollRequest, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    enrollment = await EnrollmentService(db).enroll(user, body.course_id)
    if not enrollment:
        raise HTTPException(status_code=404, detail="Course not found")
    return enrollment


@router.get("/status/{course_id}", response_model=EnrollmentStatus, summary="Enrollment status for a course")
async def enrollment_status(course_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    enrollment = await EnrollmentService(db).get_enrollment(user.id, course_id)
    if not enrollment or not enrollment.is_enrolled:
        return {"is_enrolled": False}
    return {
        "is_enrolled": True,
        "enrollment_date": enrollment.enrollment_date,
        "progress": enrollment.progress,
        "last_accessed_at": enrollment.last_accessed_at,
    }


@router.get("/user", response_model=List[EnrollmentOut], summary="Current user's enrollments")
async def user_enrollments(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await EnrollmentService(db).get_user_enrollments(user.id)


@router.get(
    "/course/{course_id}",
    response_model=List[CourseEnrollee],
    summary="Students enrolled in a course",
    responses={403: {"description": "Not the course creator"}, 404: {"description": "Course not found"}},
)
async def course_enrollments(course_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    enrollments = await EnrollmentService(db).get_course_enrollments(course_id, user)
    if enrollments is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return [
        {
            "enrollment_id": e.id,
            "user_id": e.user_id,
            "name": e.user.name,
            "email": e.user.email,
            "enrollment_date": e.enrollment_date,
            "progress": e.progress,
        }
        for e in enrollments
    ]


@router.delete(
    "/{course_id}",
    response_model=MessageResponse,
    summary="Unenroll from a course",
    responses={404: {"description": "Not enrolled"}},
)
async def unenroll(course_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    if not await EnrollmentService(db).unenroll(user.id, course_id):
        raise HTTPException(status_code=404, detail="Enrollment not found")
    return {"message": "Successfully unenrolled from course"}
