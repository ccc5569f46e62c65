from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, require_admin
from core.exceptions import RuleViolation
from core.logger import logger
from core.security import create_token
from db.session import get_db
from models.user import User
from schemas.auth import SignupRequest, LoginRequest, LoginResponse, UserOut, UserUpdate, MessageResponse
from services.semester_service import SemesterService
from services.user_service import UserService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post(
    "/signup",
    response_model=MessageResponse,
    status_code=201,
    summary="Student signup",
    responses={409: {"description": "E-mail already registered"}},
)
async def signup(body: SignupRequest, db: AsyncSession = Depends(get_db)):
    await UserService(db).create_user(body.name, body.email, body.password)
    return {"message": "Signup successfully"}


@router.post(
    "/tutor-signup",
    response_model=MessageResponse,
    status_code=201,
    summary="Tutor signup",
    responses={409: {"description": "E-mail already registered"}},
)
async def tutor_signup(body: SignupRequest, db: AsyncSession = Depends(get_db)):
    await UserService(db).create_user(body.name, body.email, body.password, is_tutor=True)
    return {"message": "Tutor signup successful"}


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Login",
    description="Exchanges e-mail and password for a bearer token.",
    responses={403: {"description": "Invalid e-mail or password"}},
)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await UserService(db).authenticate(body.email, body.password)
    if not user:
        raise HTTPException(status_code=403, detail="Auth failed, email or password is wrong")
    logger.info("User logged in", user_id=user.id)
    return {"token": create_token(user.id), "user": user}


@router.get("/validate", response_model=UserOut, summary="Validate token")
async def validate(user: User = Depends(get_current_user)):
    return user


@router.patch(
    "/users/{user_id}",
    response_model=UserOut,
    summary="Update user placement or roles",
    description="Places a student in a branch and semester, or changes role flags. Admin only.",
    responses={404: {"description": "User not found"}},
)
async def update_user(
    user_id: int,
    body: UserUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump(exclude_unset=True)
    if fields.get("semester_id") is not None:
        semester = await SemesterService(db).get_semester(fields["semester_id"])
        if not semester:
            raise RuleViolation("Semester not found")
        branch_id = fields.get("branch_id", semester.branch_id)
        if semester.branch_id != branch_id:
            raise RuleViolation("Semester does not belong to the selected branch")
        fields["branch_id"] = branch_id

    user = await UserService(db).update_user(user_id, **fields)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
