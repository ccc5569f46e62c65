from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, require_tutor_or_admin
from db.session import get_db
from models.user import User
from schemas.auth import MessageResponse
from schemas.exam import (
    ExamIn, ExamOut, PublishRequest, ExamStartResponse, ExamAttemptOut, ExamProgressRequest,
    ExamSubmitRequest, GradeRequest, UserExamItem,
)
from services.exam_service import ExamService, serialize_exam

router = APIRouter(prefix="/api/exams", tags=["exams"])

EXAM_NOT_FOUND = "Exam not found"
ATTEMPT_NOT_FOUND = "Exam attempt not found"


@router.post(
    "",
    response_model=ExamOut,
    status_code=201,
    summary="Create exam",
    responses={400: {"description": "Invalid exam definition"}, 404: {"description": "Course not found"}},
)
async def create_exam(body: ExamIn, user: User = Depends(require_tutor_or_admin), db: AsyncSession = Depends(get_db)):
    exam = await ExamService(db).create_exam(user, body.model_dump())
    if not exam:
        raise HTTPException(status_code=404, detail="Course not found")
    return serialize_exam(exam)


@router.get("/user/exams", response_model=List[UserExamItem], summary="Exams on the current user's dashboard")
async def user_exams(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await ExamService(db).user_exams(user)


@router.get("/my/attempts", response_model=List[ExamAttemptOut], summary="Current user's exam attempts")
async def my_attempts(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await ExamService(db).my_attempts(user.id)


@router.get(
    "/course/{course_id}",
    response_model=List[ExamOut],
    summary="Exams of a course",
    description="Students only see published exams, without correct options.",
    responses={403: {"description": "Not enrolled"}, 404: {"description": "Course not found"}},
)
async def course_exams(course_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    exams = await ExamService(db).course_exams(course_id, user)
    if exams is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return exams


@router.get("/{exam_id}", response_model=ExamOut, summary="Get exam", responses={404: {"description": EXAM_NOT_FOUND}})
async def get_exam(exam_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    exam = await ExamService(db).view_exam(exam_id, user)
    if not exam:
        raise HTTPException(status_code=404, detail=EXAM_NOT_FOUND)
    return exam


@router.put(
    "/{exam_id}",
    response_model=ExamOut,
    summary="Update exam",
    responses={403: {"description": "Published exam already has attempts"}, 404: {"description": EXAM_NOT_FOUND}},
)
async def update_exam(
    exam_id: int, body: ExamIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    exam = await ExamService(db).update_exam(exam_id, user, body.model_dump())
    if not exam:
        raise HTTPException(status_code=404, detail=EXAM_NOT_FOUND)
    return serialize_exam(exam)


@router.delete(
    "/{exam_id}",
    response_model=MessageResponse,
    summary="Delete exam",
    description="Exams with attempts can only be deleted by an admin; their attempts are removed too.",
    responses={404: {"description": EXAM_NOT_FOUND}},
)
async def delete_exam(exam_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    if not await ExamService(db).delete_exam(exam_id, user):
        raise HTTPException(status_code=404, detail=EXAM_NOT_FOUND)
    return {"message": "Exam deleted successfully"}


@router.patch(
    "/{exam_id}/publish",
    response_model=ExamOut,
    summary="Publish or unpublish exam",
    responses={400: {"description": "Exam has no questions"}, 404: {"description": EXAM_NOT_FOUND}},
)
async def publish_exam(
    exam_id: int, body: PublishRequest, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    exam = await ExamService(db).set_published(exam_id, user, body.is_published)
    if not exam:
        raise HTTPException(status_code=404, detail=EXAM_NOT_FOUND)
    return serialize_exam(exam)


@router.get(
    "/{exam_id}/attempts",
    response_model=List[ExamAttemptOut],
    summary="All attempts of an exam",
    responses={403: {"description": "Not allowed to view attempts"}, 404: {"description": EXAM_NOT_FOUND}},
)
async def exam_attempts(exam_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    attempts = await ExamService(db).exam_attempts(exam_id, user)
    if attempts is None:
        raise HTTPException(status_code=404, detail=EXAM_NOT_FOUND)
    return attempts


@router.post(
    "/{exam_id}/attempt/start",
    response_model=ExamStartResponse,
    summary="Start or resume an attempt",
    responses={403: {"description": "Exam unavailable or already completed"}, 404: {"description": EXAM_NOT_FOUND}},
)
async def start_attempt(exam_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    result = await ExamService(db).start_attempt(exam_id, user)
    if not result:
        raise HTTPException(status_code=404, detail=EXAM_NOT_FOUND)
    exam, attempt = result
    return {"exam": serialize_exam(exam, include_answers=False), "attempt": attempt}


@router.get(
    "/{exam_id}/attempt/status",
    response_model=ExamAttemptOut,
    summary="Status of the current user's latest attempt",
    responses={404: {"description": "No attempt found for this exam"}},
)
async def attempt_status(exam_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    attempt = await ExamService(db).attempt_status(exam_id, user)
    if not attempt:
        raise HTTPException(status_code=404, detail="No attempt found for this exam")
    return attempt


@router.post(
    "/attempts/{attempt_id}/progress",
    response_model=ExamAttemptOut,
    summary="Save answers without submitting",
    responses={400: {"description": "Attempt no longer active"}, 404: {"description": ATTEMPT_NOT_FOUND}},
)
async def save_progress(
    attempt_id: int, body: ExamProgressRequest, user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    answers = [a.model_dump() for a in body.answers]
    attempt = await ExamService(db).save_progress(attempt_id, user, answers, body.time_remaining)
    if not attempt:
        raise HTTPException(status_code=404, detail=ATTEMPT_NOT_FOUND)
    return attempt


@router.post(
    "/attempts/{attempt_id}/submit",
    response_model=ExamAttemptOut,
    summary="Submit an attempt",
    responses={400: {"description": "Already submitted"}, 404: {"description": ATTEMPT_NOT_FOUND}},
)
async def submit_attempt(
    attempt_id: int, body: ExamSubmitRequest, user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    answers = [a.model_dump() for a in body.answers]
    attempt = await ExamService(db).submit_attempt(attempt_id, user, answers)
    if not attempt:
        raise HTTPException(status_code=404, detail=ATTEMPT_NOT_FOUND)
    return attempt


@router.post(
    "/attempts/{attempt_id}/grade",
    response_model=ExamAttemptOut,
    summary="Grade subjective answers",
    responses={403: {"description": "Not allowed to grade"}, 404: {"description": ATTEMPT_NOT_FOUND}},
)
async def grade_attempt(
    attempt_id: int, body: GradeRequest, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    grades = [g.model_dump() for g in body.grades]
    attempt = await ExamService(db).grade_attempt(attempt_id, user, grades)
    if not attempt:
        raise HTTPException(status_code=404, detail=ATTEMPT_NOT_FOUND)
    return attempt
