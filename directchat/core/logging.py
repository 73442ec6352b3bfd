"""
구조화된 로깅

한 줄에 JSON 객체 하나를 남깁니다. HTTP 요청은 request_id / user_id,
WebSocket 세션은 connection_id / user_id 를 컨텍스트 변수로 붙입니다.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from directchat.core.config import settings

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
connection_id_var: ContextVar[Optional[str]] = ContextVar("connection_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

_CONTEXT_VARS = (request_id_var, connection_id_var, user_id_var)

# LogRecord 기본 속성 (extra 로 취급하지 않음)
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

# 라이브러리 로거 소음 줄이기
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "pymongo", "motor", "aiomysql")


class StructuredFormatter(logging.Formatter):
    """LogRecord -> JSON 한 줄"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        for var in _CONTEXT_VARS:
            value = var.get()
            if value:
                entry[var.name] = value

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        extra = {
            key: value for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, ensure_ascii=False, default=str)


def _file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter())
    return handler


def setup_logging():
    """
    루트 로거 구성

    - 콘솔: debug면 사람이 읽는 형식, 아니면 JSON
    - {log_dir}/app.log (INFO 이상), {log_dir}/error.log (ERROR 이상): 항상 JSON
    """
    level = logging.getLevelName(settings.log_level.upper())
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    if settings.debug:
        console.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    else:
        console.setFormatter(StructuredFormatter())

    root.addHandler(console)
    root.addHandler(_file_handler(log_dir / "app.log", logging.INFO))
    root.addHandler(_file_handler(log_dir / "error.log", logging.ERROR))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_request_context(request_id: str, user_id: Optional[str] = None):
    """HTTP 요청 컨텍스트"""
    request_id_var.set(request_id)
    user_id_var.set(user_id)


def set_connection_context(connection_id: str, user_id: str):
    """WebSocket 세션 컨텍스트 (세션 태스크 안에서만 유효)"""
    connection_id_var.set(connection_id)
    user_id_var.set(user_id)


def clear_request_context():
    for var in _CONTEXT_VARS:
        var.set(None)


def log_api_call(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    user_id: Optional[str] = None,
    **extra
):
    """HTTP 요청 완료 로그 (5xx는 ERROR, 4xx는 WARNING)"""
    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO

    logger.log(
        level,
        f"{method} {path} - {status_code} ({duration_ms:.1f}ms)",
        extra={
            "event_type": "api_call",
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
            "caller_id": user_id,
            **extra
        }
    )


def log_authentication_event(
    logger: logging.Logger,
    event: str,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
    success: bool = True,
):
    """signup / login 결과"""
    logger.log(
        logging.INFO if success else logging.WARNING,
        f"Auth {event} {'succeeded' if success else 'failed'}",
        extra={
            "event_type": "authentication",
            "auth_event": event,
            "subject_id": user_id,
            "email": email,
            "success": success,
        }
    )


def log_websocket_event(
    logger: logging.Logger,
    event: str,
    user_id: str,
    connection_id: str,
    **extra
):
    """연결/해제 (connection_count 등은 extra로)"""
    logger.info(
        f"WebSocket {event}: user {user_id}, connection {connection_id}",
        extra={
            "event_type": "websocket",
            "ws_event": event,
            "subject_id": user_id,
            "connection": connection_id,
            **extra
        }
    )


def log_delivery_failure(
    logger: logging.Logger,
    event_name: str,
    connection_id: str,
    reason: str,
):
    """실시간 이벤트 전송 실패. 호출자에게 전파하지 않습니다."""
    logger.warning(
        f"Delivery of {event_name} to connection {connection_id} failed: {reason}",
        extra={
            "event_type": "delivery_failure",
            "delivery_event": event_name,
            "connection": connection_id,
            "reason": reason,
        }
    )
