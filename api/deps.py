from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.logger import logger
from core.security import verify_token
from db.session import get_db
from models.user import User
from services.user_service import UserService


async def get_current_user(
    request: Request,
    authorization: str = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve `Authorization: Bearer <token>` to a user or fail with 401."""
    user_id = None
    if authorization and authorization.lower().startswith("bearer "):
        user_id = verify_token(authorization.split(" ", 1)[1].strip())

    if user_id:
        user = await UserService(db).get_user(user_id)
        if user:
            return user

    logger.warning("Auth failed: Missing or invalid credentials", path=request.url.path)
    raise HTTPException(status_code=401, detail="Unauthorized")


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Access denied. Admin role required.")
    return user


async def require_tutor_or_admin(user: User = Depends(get_current_user)) -> User:
    if not (user.is_admin or user.is_tutor):
        raise HTTPException(status_code=403, detail="Access denied. Admin or tutor role required.")
    return user
