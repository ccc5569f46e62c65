from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.user import User
from core.exceptions import ConflictError
from core.security import hash_password, verify_password
from core.logger import logger

class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).filter(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).filter(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def create_user(self, name: str, email: str, password: str, is_tutor: bool = False) -> User:
        if await self.get_by_email(email):
            raise ConflictError("User already exists, you can login")

        user = User(
            name=name.strip(),
            email=email.strip().lower(),
            password_hash=hash_password(password),
            is_tutor=is_tutor,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("New user created", user_id=user.id, is_tutor=is_tutor)
        return user

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        user = await self.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning("Login failed", email=email)
            return None
        return user

    async def update_user(self, user_id: int, **kwargs) -> Optional[User]:
        user = await self.get_user(user_id)
        if not user:
            return None
        for key, value in kwargs.items():
            if hasattr(user, key):
                setattr(user, key, value)
        await self.db.commit()
        logger.info("User updated", user_id=user_id, fields=list(kwargs.keys()))
        return user
