from datetime import datetime
from typing import Any, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

'''
Вспомогательная функция _error_response()

Принимает status_code, message, code, request и дополнительные поля.
Возвращает JSON-ответ единого формата: {message, code, path, timestamp, ...}.
'''
def _error_response(
    *,
    status_code: int,
    message: str,
    code: str,
    request: Request,
    extra: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    content = {
        "message": message,
        "code": code,
        "path": request.url.path,
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }
    if extra:
        content.update(extra)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content),
        headers=headers,
    )

# Базовый класс AppError
class AppError(Exception):
    status_code = 400
    code = "APP_ERROR"
    message = "Application error"

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        **extra: Any,
    ):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        # Дополнительные поля ответа (attempts_remaining, place, ...)
        self.extra = {key: value for key, value in extra.items() if value is not None}
        super().__init__(self.message)


# ================
# Кастомные ошибки
# ================

class ValidationFailed(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid request data"


class AuthenticationRequired(AppError):
    status_code = 401
    code = "AUTH_REQUIRED"
    message = "Authentication required"


class InvalidCredentials(AppError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials"


class AccountLocked(AppError):
    status_code = 401
    code = "ACCOUNT_LOCKED"
    message = "Account locked"


class PermissionDeniedError(AppError):
    status_code = 403
    code = "PERMISSION_DENIED"
    message = "You are not allowed to perform this action"


class AdminRequired(AppError):
    status_code = 403
    code = "ADMIN_REQUIRED"
    message = "Admin access required"


class CsrfError(AppError):
    status_code = 403
    code = "CSRF_ERROR"
    message = "Security token has expired. Please refresh the page and try again."


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    code = "CONFLICT"
    message = "Resource already exists"


class GeocodingFailed(AppError):
    status_code = 422
    code = "GEOCODING_FAILED"
    message = "Failed to geocode address"


class UpstreamServiceError(AppError):
    status_code = 500
    code = "UPSTREAM_ERROR"
    message = "External service error"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("{} {} -> {}: {}", request.method, request.url.path, exc.code, exc.message)
    return _error_response(
        status_code=exc.status_code,
        message=exc.message,
        code=exc.code,
        request=request,
        extra=exc.extra,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error_response(
        status_code=exc.status_code,
        message=message,
        code="HTTP_ERROR",
        request=request,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    return _error_response(
        status_code=400,
        message="Invalid request data",
        code="VALIDATION_ERROR",
        request=request,
        extra={"errors": errors},
    )


# Сообщения и коды для каждого ограничителя (по scope лимита)
RATE_LIMIT_RESPONSES = {
    "auth": ("Too many authentication attempts, please try again in 15 minutes", "RATE_LIMIT_EXCEEDED"),
    "login": ("Too many login attempts, please try again in 15 minutes", "LOGIN_RATE_LIMIT_EXCEEDED"),
}
GENERAL_RATE_LIMIT_RESPONSE = ("Too many requests, please try again later", "GENERAL_RATE_LIMIT_EXCEEDED")


def rate_limit_exceeded_handler(
    request: Request,
    exc: RateLimitExceeded,
) -> JSONResponse:
    scope = getattr(getattr(exc, "limit", None), "scope", None)
    message, code = RATE_LIMIT_RESPONSES.get(scope, GENERAL_RATE_LIMIT_RESPONSE)
    logger.warning("Rate limit {} exceeded for {} {}", code, request.method, request.url.path)
    return _error_response(
        status_code=429,
        message=message,
        code=code,
        request=request,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    return _error_response(
        status_code=500,
        message="Internal server error",
        code="INTERNAL_SERVER_ERROR",
        request=request,
    )
