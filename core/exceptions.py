class ServiceError(Exception):
    """Base error raised by services when a business rule blocks an action."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RuleViolation(ServiceError):
    status_code = 400


class PermissionDenied(ServiceError):
    status_code = 403


class ConflictError(ServiceError):
    status_code = 409


class RateLimited(ServiceError):
    status_code = 429


class UpstreamError(ServiceError):
    """The AI provider failed or returned something unusable."""
    status_code = 502
