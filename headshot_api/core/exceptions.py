from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="FORBIDDEN", status_code=status.HTTP_403_FORBIDDEN)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class InvalidArgumentError(AppError):
    def __init__(self, message: str = "Invalid argument", details: dict[str, Any] | None = None):
        super().__init__(message, code="INVALID_ARGUMENT", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class InsufficientCreditsError(AppError):
    def __init__(self, required: int, available: int):
        super().__init__(
            f"Not enough credits. Need {required}, have {available}",
            code="INSUFFICIENT_CREDITS",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"required": required, "available": available},
        )
        self.required = required
        self.available = available


class TooManyRequestsError(AppError):
    def __init__(self, message: str = "Too many requests", retry_after: int | None = None):
        details = {"retry_after": retry_after} if retry_after is not None else None
        super().__init__(message, code="RATE_LIMITED", status_code=status.HTTP_429_TOO_MANY_REQUESTS, details=details)


class PersistenceError(AppError):
    def __init__(self, message: str = "Ledger store unavailable"):
        super().__init__(message, code="PERSISTENCE_ERROR", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


class GenerationError(AppError):
    def __init__(self, message: str = "Image generation failed", details: dict[str, Any] | None = None):
        super().__init__(message, code="GENERATION_FAILED", status_code=status.HTTP_502_BAD_GATEWAY, details=details)


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = {
        "error": {
            "message": exc.message,
            "code": exc.code,
            "details": exc.details,
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(status_code=exc.status_code, content=body)


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    if exc.status_code >= 500:
        from headshot_api.core.logging import get_logger
        get_logger(__name__).error("app_error", code=exc.code, message=exc.message, path=request.url.path)
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    body = {
        "error": {
            "message": "Validation error",
            "code": "VALIDATION_ERROR",
            "details": {"errors": jsonable_encoder(exc.errors())},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=body,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from headshot_api.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    body = {
        "error": {
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
            "details": {},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
    )
