from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, require_tutor_or_admin
from db.session import get_db
from models.user import User
from schemas.auth import MessageResponse
from schemas.catalog import CourseIn, CourseOut
from services.course_service import CourseService

router = APIRouter(prefix="/api/courses", tags=["courses"])


@router.get("", response_model=List[CourseOut], summary="List courses")
async def list_courses(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await CourseService(db).list_courses()


@router.get(
    "/enrolled",
    response_model=List[CourseOut],
    summary="Courses the current user is enrolled in",
    description="Used by the practice screen to choose a course.",
)
async def enrolled_courses(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await CourseService(db).get_enrolled_courses(user.id)


@router.get(
    "/{course_id}",
    response_model=CourseOut,
    summary="Get course",
    responses={404: {"description": "Course not found"}},
)
async def get_course(course_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    course = await CourseService(db).get_course(course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


@router.post(
    "",
    response_model=CourseOut,
    status_code=201,
    summary="Create course",
    responses={400: {"description": "Visibility rules not met"}},
)
async def create_course(
    body: CourseIn, user: User = Depends(require_tutor_or_admin), db: AsyncSession = Depends(get_db)
):
    return await CourseService(db).create_course(user, **body.model_dump())


@router.put(
    "/{course_id}",
    response_model=CourseOut,
    summary="Update course",
    responses={403: {"description": "Not the creator"}, 404: {"description": "Course not found"}},
)
async def update_course(
    course_id: int, body: CourseIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    course = await CourseService(db).update_course(course_id, user, **body.model_dump())
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


@router.delete(
    "/{course_id}",
    response_model=MessageResponse,
    summary="Delete course",
    responses={403: {"description": "Not the creator"}, 404: {"description": "Course not found"}},
)
async def delete_course(course_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    if not await CourseService(db).delete_course(course_id, user):
        raise HTTPException(status_code=404, detail="Course not found")
    return {"message": "Course deleted successfully"}
