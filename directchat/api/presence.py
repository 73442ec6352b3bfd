"""
Presence 조회 API

presence는 실시간 연결 상태에서 계산되며, 쓰기는 WebSocket 연결/해제와
updatePresence 프레임으로만 이루어집니다.
"""

from fastapi import APIRouter, Depends

from directchat.api.auth import get_current_user_id
from directchat.schemas.presence import OnlineUsersResponse, PresenceRecord
from directchat.websockets.hub import RealtimeHub, get_realtime_hub

router = APIRouter(prefix="/api/presence", tags=["Presence"])


@router.get("/online", response_model=OnlineUsersResponse)
async def get_online_users(
    current_user_id: str = Depends(get_current_user_id),
    hub: RealtimeHub = Depends(get_realtime_hub)
) -> OnlineUsersResponse:
    """현재 온라인 사용자 목록"""
    roster = hub.presence.roster()
    return OnlineUsersResponse(user_ids=list(roster.user_ids), count=len(roster.user_ids))


@router.get("/{user_id}", response_model=PresenceRecord)
async def get_user_presence(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    hub: RealtimeHub = Depends(get_realtime_hub)
) -> PresenceRecord:
    """
    특정 사용자의 presence

    연결이 없으면 last_seen_at 기준 5분 이내는 recently-online, 그 외에는 offline
    """
    return hub.presence.status(user_id)
