from typing import Dict, Optional

import httpx
import structlog

from client.config import client_settings
from client.exceptions import ApiError, NotAuthenticatedError, ResponseShapeError, error_message
from schemas.auth import LoginResponse, UserOut
from pydantic import ValidationError

logger = structlog.get_logger()


class AuthSession:
    """
    The logged-in user, passed explicitly to every API client.
    Holds the bearer token and role flags for the lifetime of the login.
    """

    def __init__(self, token: str, user: UserOut):
        self.token: Optional[str] = token
        self.user: Optional[UserOut] = user

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def user_id(self) -> Optional[int]:
        return self.user.id if self.user else None

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.is_admin)

    @property
    def is_tutor(self) -> bool:
        return bool(self.user and self.user.is_tutor)

    @property
    def is_student(self) -> bool:
        return bool(self.user) and not (self.is_admin or self.is_tutor)

    def headers(self) -> Dict[str, str]:
        if not self.token:
            raise NotAuthenticatedError()
        return {"Authorization": f"Bearer {self.token}"}

    def logout(self):
        logger.info("Session closed", user_id=self.user_id)
        self.token = None
        self.user = None


async def login(email: str, password: str, base_url: Optional[str] = None,
                transport: Optional[httpx.AsyncBaseTransport] = None) -> AuthSession:
    """Exchange credentials for an AuthSession."""
    base_url = base_url or client_settings.API_URL
    async with httpx.AsyncClient(base_url=base_url, timeout=client_settings.API_TIMEOUT_SECONDS,
                                 transport=transport) as client:
        try:
            response = await client.post("/api/auth/login", json={"email": email, "password": password})
        except httpx.HTTPError as e:
            raise ApiError(None, f"Could not reach server: {e}") from e

    if response.status_code != 200:
        raise ApiError(response.status_code, error_message(response))

    try:
        body = LoginResponse.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        raise ResponseShapeError("/api/auth/login", str(e)) from e

    logger.info("Logged in", user_id=body.user.id)
    return AuthSession(body.token, body.user)
