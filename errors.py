import logging
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """HTTPException carrying a stable error code for the response body."""

    code = "InternalError"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal Server Error"

    def __init__(self, detail: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=self.status_code_default,
            detail=detail or self.default_detail,
            headers=headers,
        )


class ValidationFailed(ApiError):
    code = "ValidationError"
    status_code_default = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class _AuthError(ApiError):
    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Unauthenticated(_AuthError):
    code = "Unauthenticated"
    default_detail = "Not authenticated"


class TokenExpired(_AuthError):
    code = "TokenExpired"
    default_detail = "Token expired. Please log in again"


class InvalidToken(_AuthError):
    code = "InvalidToken"
    default_detail = "Could not validate credentials"


class Forbidden(ApiError):
    code = "Forbidden"
    status_code_default = status.HTTP_403_FORBIDDEN
    default_detail = "Action not allowed"


class NotFound(ApiError):
    code = "NotFound"
    status_code_default = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Conflict(ApiError):
    code = "Conflict"
    status_code_default = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists"


class UploadFailed(ApiError):
    code = "UploadFailed"
    default_detail = "Image upload failed server-side"


class InternalError(ApiError):
    code = "InternalError"


# 4xx statuses with no class of their own (405, 413, 429, ...)
CLIENT_ERROR_CODE = "ClientError"


def _error_code(exc: StarletteHTTPException) -> str:
    if isinstance(exc, ApiError):
        return exc.code
    return {
        400: ValidationFailed.code,
        401: Unauthenticated.code,
        403: Forbidden.code,
        404: NotFound.code,
        409: Conflict.code,
    }.get(exc.status_code, CLIENT_ERROR_CODE if 400 <= exc.status_code < 500 else InternalError.code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": _error_code(exc)},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    errors = exc.errors() if hasattr(exc, "errors") else []
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        detail = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        detail = ValidationFailed.default_detail

    logger.info("Validation error on %s: %s", request.url.path, detail)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": detail, "error": ValidationFailed.code},
    )


def register_exception_handlers(api: FastAPI) -> None:
    api.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore
    api.add_exception_handler(RequestValidationError, validation_exception_handler)
    api.add_exception_handler(PydanticValidationError, validation_exception_handler)
