from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from client.auth import AuthSession
from client.config import client_settings
from client.exceptions import ApiError, NotAuthenticatedError, ResponseShapeError, error_message
from schemas.catalog import CourseOut
from schemas.practice import AnswerIn, PracticeHistoryItem, PracticeOut

logger = structlog.get_logger()

Model = TypeVar("Model", bound=BaseModel)


class ApiClient:
    """
    Request/response wrapper around httpx bound to one AuthSession.
    Every response is parsed into a schema model or rejected; nothing is retried or cached.
    """

    def __init__(self, session: AuthSession, base_url: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None, timeout: Optional[float] = None):
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=base_url or client_settings.API_URL,
            timeout=timeout or client_settings.API_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _send(self, method: str, path: str, json: Any = None, params: Optional[Dict] = None) -> httpx.Response:
        if not self.session.is_authenticated:
            raise NotAuthenticatedError()
        try:
            response = await self._client.request(method, path, json=json, params=params,
                                                  headers=self.session.headers())
        except httpx.HTTPError as e:
            logger.warning("Request failed", method=method, path=path, error=str(e))
            raise ApiError(None, f"Could not reach server: {e}") from e

        if response.is_error:
            message = error_message(response)
            logger.warning("API error", method=method, path=path, status=response.status_code, detail=message)
            raise ApiError(response.status_code, message)
        return response

    @staticmethod
    def _json(response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ResponseShapeError(path, "body is not JSON") from e

    async def request_one(self, method: str, path: str, model: Type[Model], json: Any = None,
                          params: Optional[Dict] = None) -> Model:
        response = await self._send(method, path, json=json, params=params)
        try:
            return model.model_validate(self._json(response, path))
        except ValidationError as e:
            raise ResponseShapeError(path, str(e)) from e

    async def request_list(self, method: str, path: str, model: Type[Model], json: Any = None,
                           params: Optional[Dict] = None) -> List[Model]:
        response = await self._send(method, path, json=json, params=params)
        try:
            return TypeAdapter(List[model]).validate_python(self._json(response, path))
        except ValidationError as e:
            raise ResponseShapeError(path, str(e)) from e

    async def request_none(self, method: str, path: str, json: Any = None):
        """For calls whose body the caller does not need (deletes, acknowledgements)."""
        await self._send(method, path, json=json)


class PracticeClient(ApiClient):
    """The practice endpoints used by the session controller and history screen."""

    async def list_enrolled_courses(self) -> List[CourseOut]:
        return await self.request_list("GET", "/api/courses/enrolled", CourseOut)

    async def generate_attempt(self, course_id: int, difficulty: str = "medium",
                               number_of_questions: int = 5) -> PracticeOut:
        return await self.request_one("POST", "/api/practice/generate", PracticeOut, json={
            "course_id": course_id,
            "difficulty": difficulty,
            "number_of_questions": number_of_questions,
        })

    async def fetch_attempt(self, practice_id: int) -> PracticeOut:
        return await self.request_one("GET", f"/api/practice/{practice_id}", PracticeOut)

    async def start_attempt(self, practice_id: int) -> PracticeOut:
        """Start or resume; the result carries the remaining time and the expiry flag."""
        return await self.request_one("POST", f"/api/practice/{practice_id}/start", PracticeOut)

    async def update_remaining_time(self, practice_id: int, seconds: int) -> PracticeOut:
        return await self.request_one("POST", f"/api/practice/{practice_id}/time", PracticeOut,
                                      json={"time_remaining": seconds})

    async def submit_attempt(self, practice_id: int, answers: List[AnswerIn]) -> PracticeOut:
        return await self.request_one("POST", f"/api/practice/{practice_id}/submit", PracticeOut,
                                      json={"answers": [a.model_dump() for a in answers]})

    async def list_history(self) -> List[PracticeHistoryItem]:
        return await self.request_list("GET", "/api/practice", PracticeHistoryItem)
