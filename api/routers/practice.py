from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user
from db.session import get_db, get_redis
from models.user import User
from schemas.practice import (
    PracticeGenerateRequest, PracticeOut, PracticeHistoryItem, TimeUpdateRequest, SubmitRequest,
)
from services.practice_service import PracticeService, serialize_practice, history_item

router = APIRouter(prefix="/api/practice", tags=["practice"])

NOT_FOUND = "Practice session not found"


@router.post(
    "/generate",
    response_model=PracticeOut,
    status_code=201,
    summary="Generate a practice session",
    description="Asks the AI provider for questions on an enrolled course. Rate limited per user.",
    responses={
        400: {"description": "Not enrolled in the course"},
        404: {"description": "Course not found"},
        429: {"description": "Too many requests. Please wait."},
        502: {"description": "AI provider failed"},
    },
)
async def generate_practice(
    body: PracticeGenerateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    service = PracticeService(db, redis=redis)
    practice = await service.generate(user, body.course_id, body.difficulty, body.number_of_questions)
    if not practice:
        raise HTTPException(status_code=404, detail="Course not found")
    return serialize_practice(practice)


@router.get("", response_model=List[PracticeHistoryItem], summary="Practice history, newest first")
async def practice_history(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return [history_item(p) for p in await PracticeService(db).get_history(user.id)]


@router.get(
    "/{practice_id}",
    response_model=PracticeOut,
    summary="Get a practice session",
    description="Correct answers are only included once the session is completed.",
    responses={404: {"description": NOT_FOUND}},
)
async def get_practice(practice_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    practice = await PracticeService(db).get_practice(practice_id, user.id)
    if not practice:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return serialize_practice(practice)


@router.post(
    "/{practice_id}/start",
    response_model=PracticeOut,
    summary="Start or resume a practice session",
    responses={404: {"description": NOT_FOUND}},
)
async def start_practice(practice_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    result = await PracticeService(db).start(practice_id, user.id)
    if not result:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    practice, time_expired = result
    return serialize_practice(practice, time_expired=time_expired)


@router.post(
    "/{practice_id}/time",
    response_model=PracticeOut,
    summary="Sync remaining time",
    responses={400: {"description": "Session already completed"}, 404: {"description": NOT_FOUND}},
)
async def update_time(
    practice_id: int,
    body: TimeUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    practice = await PracticeService(db).update_time(practice_id, user.id, body.time_remaining)
    if not practice:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return serialize_practice(practice)


@router.post(
    "/{practice_id}/submit",
    response_model=PracticeOut,
    summary="Submit answers",
    description="Grades answers by exact option text and completes the session.",
    responses={400: {"description": "Session already completed"}, 404: {"description": NOT_FOUND}},
)
async def submit_practice(
    practice_id: int,
    body: SubmitRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    answers = [a.model_dump() for a in body.answers]
    practice = await PracticeService(db).submit(practice_id, user.id, answers)
    if not practice:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return serialize_practice(practice)
