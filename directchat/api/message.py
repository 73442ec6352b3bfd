from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from directchat.api.auth import get_current_user, get_current_user_id
from directchat.core.errors import user_not_found_error
from directchat.core.logging import get_logger
from directchat.models.users import User
from directchat.reconciliation import catch_up
from directchat.schemas.message import (
    MessageCreate,
    MessageDeleteResponse,
    MessageRecord,
    MessagesClearResponse,
)
from directchat.schemas.user import SidebarUser
from directchat.services.message_gateway import MessageGateway, get_message_gateway
from directchat.services.message_store import MessageStore, get_message_store
from directchat.services.user_store import UserStore, get_user_store
from directchat.websockets.hub import RealtimeHub, get_realtime_hub

logger = get_logger(__name__)
router = APIRouter(prefix="/api/messages", tags=["Messages"])


@router.get("/users", response_model=List[SidebarUser])
async def get_users_for_sidebar(
    current_user: User = Depends(get_current_user),
    user_store: UserStore = Depends(get_user_store),
    hub: RealtimeHub = Depends(get_realtime_hub)
) -> List[SidebarUser]:
    """
    사이드바 사용자 목록 (나를 제외한 모든 사용자 + presence)
    """
    users = await user_store.list_users_except(current_user.id)

    sidebar = []
    for user in users:
        presence = hub.presence.status(user.id)
        sidebar.append(SidebarUser(
            id=user.id,
            full_name=user.full_name,
            email=user.email,
            profile_pic=user.profile_pic,
            created_at=user.created_at,
            status=presence.status.value,
            last_seen_at=presence.last_seen_at
        ))
    return sidebar


@router.get("/{other_user_id}/new", response_model=List[MessageRecord])
async def get_new_messages(
    other_user_id: str,
    since: Optional[datetime] = Query(None, description="이 시각 이후(초과)의 메시지만 조회"),
    current_user_id: str = Depends(get_current_user_id),
    store: MessageStore = Depends(get_message_store)
) -> List[MessageRecord]:
    """
    catch-up 조회

    - **since**: 마지막으로 받은 메시지의 createdAt (없으면 최근 메시지)
    """
    return await catch_up(store, current_user_id, other_user_id, since)


@router.get("/{other_user_id}", response_model=List[MessageRecord])
async def get_messages(
    other_user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    store: MessageStore = Depends(get_message_store)
) -> List[MessageRecord]:
    """
    대화 내역 조회 (최근 메시지, 오름차순)
    """
    return await catch_up(store, current_user_id, other_user_id)


@router.post("/send/{receiver_id}", response_model=MessageRecord, status_code=status.HTTP_201_CREATED)
async def send_message(
    receiver_id: str,
    message_data: MessageCreate,
    current_user_id: str = Depends(get_current_user_id),
    user_store: UserStore = Depends(get_user_store),
    gateway: MessageGateway = Depends(get_message_gateway)
) -> MessageRecord:
    """
    메시지 전송

    - **text**: 메시지 텍스트
    - **image**: base64 이미지 (선택사항)

    text, image 중 최소 하나는 있어야 합니다.
    """
    # 빈 메시지는 수신자 조회 전에 거부
    gateway.check_content(message_data)

    if not await user_store.find_user(receiver_id):
        raise user_not_found_error(receiver_id)

    return await gateway.send(current_user_id, receiver_id, message_data)


@router.delete("/delete/{message_id}", response_model=MessageDeleteResponse)
async def delete_message(
    message_id: str,
    current_user_id: str = Depends(get_current_user_id),
    gateway: MessageGateway = Depends(get_message_gateway)
) -> MessageDeleteResponse:
    """
    메시지 삭제 (본인이 보낸 메시지만)
    """
    await gateway.delete(current_user_id, message_id)
    return MessageDeleteResponse(message_id=message_id)


@router.delete("/clear/{other_user_id}", response_model=MessagesClearResponse)
async def clear_messages(
    other_user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    gateway: MessageGateway = Depends(get_message_gateway)
) -> MessagesClearResponse:
    """
    대화 정리 (내가 상대에게 보낸 메시지만 삭제)
    """
    deleted_count = await gateway.clear_for_pair(current_user_id, other_user_id)
    return MessagesClearResponse(
        message=f"{deleted_count} messages deleted",
        deleted_count=deleted_count
    )
