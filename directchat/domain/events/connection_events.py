"""
Connection Control Events

요청한 연결 하나에만 전달되는 응답 프레임
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from .base import DeliveryEvent


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Pong(DeliveryEvent):
    """ping 응답"""
    event_name = "pong"

    timestamp: datetime = field(default_factory=_utcnow)

    def to_payload(self):
        return {"timestamp": self.timestamp.isoformat()}


@dataclass(frozen=True)
class ErrorNotice(DeliveryEvent):
    """클라이언트 프레임 처리 실패 알림"""
    event_name = "error"

    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_payload(self):
        return {
            "errorCode": self.error_code,
            "message": self.message,
            "details": self.details
        }
