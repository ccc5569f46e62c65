from typing import Optional


class ClientError(Exception):
    """Base class for everything the API client raises."""


class NotAuthenticatedError(ClientError):
    """The session was never logged in or has been logged out."""

    def __init__(self, message: str = "Not authenticated, please login"):
        super().__init__(message)
        self.message = message


class ApiError(ClientError):
    """
    A request failed. `status_code` is the HTTP status, or None when the
    server could not be reached at all. `message` is the server's `detail`.
    """

    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(f"{status_code}: {message}" if status_code else message)
        self.status_code = status_code
        self.message = message


class ResponseShapeError(ClientError):
    """The server answered 2xx but the body did not match the expected model."""

    def __init__(self, path: str, detail: str):
        super().__init__(f"Unexpected response from {path}: {detail}")
        self.path = path
        self.detail = detail


class FieldValidationError(ClientError):
    """A required field failed local validation before any request was sent."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


def error_message(response) -> str:
    """Pull the server's `detail` out of an error response, falling back to the raw body."""
    try:
        detail = response.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    if isinstance(detail, list):
        # Request validation errors: [{loc, msg, type}, ...]
        detail = "; ".join(str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in detail)
    return str(detail) if detail else (response.text or response.reason_phrase)
