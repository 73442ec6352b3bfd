"""
에러 응답 변환

라우트 밖으로 빠져나온 예외를 표준 에러 envelope
{"error", "message", "details", "status_code", "retryable"} 로 바꿉니다.
저장소 연결 오류와 시간 초과는 retryable 503 입니다.
"""

import asyncio
import traceback
from typing import Callable, Optional

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import OperationFailure, PyMongoError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from directchat.core.config import settings
from directchat.core.errors import (
    BaseCustomException,
    ErrorResponse,
    ValidationError,
    ValidationErrorResponse,
    create_error_response,
    create_validation_error_response,
)
from directchat.core.logging import get_logger

logger = get_logger(__name__)


def _debug_detail(exc: Exception) -> Optional[dict]:
    return {"detail": str(exc)} if settings.debug else None


def _validation_errors(errors) -> list:
    converted = []
    for error in errors:
        value = error.get("input")
        if not (value is None or isinstance(value, (str, int, float, bool))):
            value = str(value)
        converted.append(ValidationError(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            value=value
        ))
    return converted


def _render(body) -> JSONResponse:
    if isinstance(body, BaseCustomException):
        return JSONResponse(status_code=body.status_code, content=body.to_dict())
    return JSONResponse(status_code=body.status_code, content=body.model_dump())


def exception_to_error(exc: Exception):
    """
    예외 -> BaseCustomException | ErrorResponse | ValidationErrorResponse

    알 수 없는 예외는 500 internal_server_error 입니다.
    """
    if isinstance(exc, BaseCustomException):
        return exc

    if isinstance(exc, PydanticValidationError):
        return create_validation_error_response("Request validation failed", _validation_errors(exc.errors()))

    if isinstance(exc, IntegrityError):
        detail = str(getattr(exc, "orig", exc))
        logger.warning(f"Integrity error: {detail}")
        if "Duplicate entry" in detail or "UNIQUE constraint" in detail:
            return create_error_response(
                "duplicate_entry", "Duplicate entry detected",
                status.HTTP_409_CONFLICT, {"constraint": "unique"}
            )
        return create_error_response(
            "database_constraint", "Database constraint violation",
            status.HTTP_400_BAD_REQUEST, _debug_detail(exc)
        )

    if isinstance(exc, OperationFailure):
        # 권한/쿼리 오류는 재시도해도 같음
        logger.error(f"MongoDB operation failed: {exc}")
        return create_error_response(
            "store_operation_failed", "Store operation failed",
            status.HTTP_400_BAD_REQUEST, _debug_detail(exc)
        )

    if isinstance(exc, (SQLAlchemyError, PyMongoError)):
        logger.error(f"Store unavailable: {type(exc).__name__}: {exc}")
        return create_error_response(
            "persistence_failed", "Store unavailable, please retry shortly",
            status.HTTP_503_SERVICE_UNAVAILABLE, _debug_detail(exc), retryable=True
        )

    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        logger.error(f"Request timed out: {exc}")
        return create_error_response(
            "timeout_error", "Request timed out",
            status.HTTP_503_SERVICE_UNAVAILABLE, _debug_detail(exc), retryable=True
        )

    logger.exception(f"Unhandled exception: {type(exc).__name__}: {exc}")
    details = None
    if settings.debug:
        details = {"exception": str(exc), "type": type(exc).__name__, "traceback": traceback.format_exc()}
    return create_error_response(
        "internal_server_error", "An unexpected error occurred",
        status.HTTP_500_INTERNAL_SERVER_ERROR, details
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """HTTP 요청 처리 중 빠져나온 예외를 envelope 응답으로 변환"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            return _render(exception_to_error(e))


def create_http_exception_handler():
    """HTTPException (커스텀 예외 포함) 핸들러"""
    async def http_exception_handler(request: Request, exc):
        if isinstance(exc, BaseCustomException):
            return _render(exc)

        body: ErrorResponse = create_error_response(
            "http_error",
            exc.detail if isinstance(exc.detail, str) else "HTTP error occurred",
            exc.status_code,
            None if isinstance(exc.detail, str) else {"detail": exc.detail}
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=body.model_dump(),
            headers=getattr(exc, "headers", None)
        )

    return http_exception_handler


def create_validation_exception_handler():
    """RequestValidationError -> 422 validation_error"""
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        body: ValidationErrorResponse = create_validation_error_response(
            "Request validation failed", _validation_errors(exc.errors())
        )
        return _render(body)

    return validation_exception_handler
