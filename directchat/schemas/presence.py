from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import Field

from directchat.schemas.message import CamelModel


class PresenceStatus(str, Enum):
    """사용자 presence 상태"""
    ONLINE = "online"
    AWAY = "away"
    BUSY = "busy"
    RECENTLY_ONLINE = "recently-online"
    OFFLINE = "offline"


# 연결된 사용자가 명시적으로 선언할 수 있는 상태
DECLARABLE_STATUSES = {PresenceStatus.ONLINE, PresenceStatus.AWAY, PresenceStatus.BUSY}


class PresenceRecord(CamelModel):
    """presence 조회 결과 (읽는 시점에 계산)"""
    user_id: str
    status: PresenceStatus
    last_seen_at: Optional[datetime] = None
    connection_count: int = 0


class OnlineUsersResponse(CamelModel):
    """현재 온라인 사용자 목록"""
    user_ids: List[str] = Field(default_factory=list)
    count: int = 0
