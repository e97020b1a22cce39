"""Application exception types."""

from lifelog.schemas.error import ErrorResponse


class ApiError(Exception):
    """Structured API error that maps directly to JSON error payloads."""

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        status_code: int | None = None,
        code: str | None = None,
        message: str = "Unexpected error",
        details: str | None = None,
    ) -> None:
        if status_code is not None:
            self.status_code = status_code
        self.payload = ErrorResponse(code=code or self.default_code, message=message, details=details)
        super().__init__(message)


class ValidationError(ApiError):
    status_code = 400
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: str | None = None) -> None:
        super().__init__(code=code, message=message, details=details)


class AuthenticationError(ApiError):
    status_code = 401
    default_code = "UNAUTHORIZED"

    def __init__(self, message: str, *, code: str | None = None, details: str | None = None) -> None:
        super().__init__(code=code, message=message, details=details)


class AuthorizationError(ApiError):
    status_code = 403
    default_code = "FORBIDDEN"

    def __init__(self, message: str, *, code: str | None = None, details: str | None = None) -> None:
        super().__init__(code=code, message=message, details=details)


class NotFoundError(ApiError):
    """Missing record, or a record owned by someone else; the two share one shape."""

    status_code = 404
    default_code = "RESOURCE_NOT_FOUND"

    def __init__(self, message: str = "Resource not found", *, code: str | None = None) -> None:
        super().__init__(code=code, message=message)


class ConflictError(ApiError):
    status_code = 409
    default_code = "CONFLICT"

    def __init__(self, message: str, *, code: str | None = None, details: str | None = None) -> None:
        super().__init__(code=code, message=message, details=details)


class DependencyError(ApiError):
    status_code = 500
    default_code = "DEPENDENCY_FAILURE"

    def __init__(self, message: str, *, code: str | None = None, details: str | None = None) -> None:
        super().__init__(code=code, message=message, details=details)


class InitializationError(ApiError):
    status_code = 503
    default_code = "SERVICE_UNAVAILABLE"

    def __init__(self, message: str, *, code: str | None = None, details: str | None = None) -> None:
        super().__init__(code=code, message=message, details=details)


__all__ = [
    "ApiError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "DependencyError",
    "InitializationError",
    "NotFoundError",
    "ValidationError",
]
