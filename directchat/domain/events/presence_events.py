"""
Presence Delivery Events
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple
from .base import DeliveryEvent
from directchat.schemas.presence import PresenceStatus


@dataclass(frozen=True)
class PresenceChanged(DeliveryEvent):
    """
    presence 변경 이벤트

    연결/해제로 인한 전이는 userOnline / userOffline,
    사용자가 직접 선언한 상태(explicit)는 userPresenceUpdate로 전송됩니다.
    """
    user_id: str
    status: PresenceStatus
    last_seen_at: Optional[datetime] = None
    explicit: bool = False

    @property
    def name(self) -> str:
        if self.explicit:
            return "userPresenceUpdate"
        if self.status == PresenceStatus.ONLINE:
            return "userOnline"
        return "userOffline"

    def to_payload(self):
        last_seen = self.last_seen_at.isoformat() if self.last_seen_at else None
        if self.explicit:
            return {
                "userId": self.user_id,
                "status": self.status.value,
                "lastSeenAt": last_seen
            }
        if self.status == PresenceStatus.ONLINE:
            return self.user_id
        return {"userId": self.user_id, "lastSeenAt": last_seen}


@dataclass(frozen=True)
class OnlineUsers(DeliveryEvent):
    """전체 온라인 사용자 목록 스냅샷"""
    event_name = "getOnlineUsers"

    user_ids: Tuple[str, ...]

    def to_payload(self):
        return list(self.user_ids)
