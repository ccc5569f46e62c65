from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class SignupRequest(BaseModel):
    """Request body for creating a student or tutor account."""
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    is_admin: bool = False
    is_tutor: bool = False
    branch_id: Optional[int] = None
    semester_id: Optional[int] = None


class LoginResponse(BaseModel):
    token: str = Field(..., description="Bearer token for the Authorization header")
    user: UserOut


class MessageResponse(BaseModel):
    """Generic acknowledgement."""
    message: str


class UserUpdate(BaseModel):
    """Admin update of a user's placement or roles. Omitted fields stay unchanged."""
    branch_id: Optional[int] = None
    semester_id: Optional[int] = None
    is_tutor: Optional[bool] = None
    is_admin: Optional[bool] = None
