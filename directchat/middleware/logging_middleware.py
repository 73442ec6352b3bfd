"""
HTTP 요청 로깅 미들웨어

요청마다 request_id를 만들고, 호출자(user_id)와 함께 로그 컨텍스트에 넣습니다.
민감한 헤더는 로그에 남기지 않습니다.
"""

import time
import uuid
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from directchat.core.logging import clear_request_context, get_logger, log_api_call, set_request_context
from directchat.utils.auth import decode_access_token

logger = get_logger(__name__)

REDACTED = "***"
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "set-cookie", "x-api-key"})
REQUEST_ID_HEADER = "X-Request-ID"


def redact_headers(headers: Iterable) -> dict:
    return {
        name: REDACTED if name.lower() in SENSITIVE_HEADERS else value
        for name, value in headers
    }


def client_ip(request: Request) -> str:
    """프록시 헤더(X-Forwarded-For, X-Real-IP)를 우선"""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else "unknown")


def caller_id(request: Request) -> Optional[str]:
    """Bearer 토큰 또는 jwt 쿠키의 sub (로그용, 검증 실패 시 None)"""
    authorization = request.headers.get("authorization", "")
    token = authorization[7:] if authorization.startswith("Bearer ") else request.cookies.get("jwt")
    payload = decode_access_token(token) if token else None
    return payload.get("sub") if payload else None


class LoggingMiddleware(BaseHTTPMiddleware):

    def __init__(self, app, log_headers: bool = True):
        super().__init__(app)
        self.log_headers = log_headers

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        user_id = caller_id(request)
        ip = client_ip(request)
        started = time.perf_counter()
        set_request_context(request_id, user_id)

        logger.debug(f"-> {request.method} {request.url.path}", extra={
            "event_type": "request_started",
            "query": str(request.query_params) or None,
            "request_headers": redact_headers(request.headers.items()) if self.log_headers else None,
            "client_ip": ip,
        })

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"{request.method} {request.url.path} raised {type(e).__name__}", extra={
                "event_type": "api_error",
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "client_ip": ip,
            }, exc_info=True)
            raise
        else:
            log_api_call(
                logger,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=(time.perf_counter() - started) * 1000,
                user_id=user_id,
                client_ip=ip,
                user_agent=request.headers.get("user-agent")
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_request_context()
