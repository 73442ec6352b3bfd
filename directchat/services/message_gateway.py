"""
Message gateway

메시지 전송/삭제/정리의 유일한 진입점입니다.
저장이 성공한 뒤에만 실시간 이벤트를 큐에 넣으며, 이벤트 전송 실패는 응답에 영향을 주지 않습니다.
"""

from typing import Optional, Tuple

from fastapi import Depends

from directchat.core.errors import (
    AuthorizationException,
    EmptyMessageException,
    message_not_found_error,
)
from directchat.core.validators import Validator
from directchat.core.logging import get_logger
from directchat.domain.events import MessageDeleted, MessagesCleared, NewMessage
from directchat.schemas.message import MessageCreate, MessageRecord
from directchat.services.blob_store import BlobStore, get_blob_store
from directchat.services.message_store import MessageStore, get_message_store
from directchat.websockets.event_bus import EventBus
from directchat.websockets.hub import RealtimeHub, get_realtime_hub

logger = get_logger(__name__)


def _normalize_text(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    return text or None


class MessageGateway:
    """메시지 변경 + 실시간 fan-out"""

    def __init__(self, store: MessageStore, bus: EventBus, blob_store: BlobStore):
        self.store = store
        self.bus = bus
        self.blob_store = blob_store

    # =========================================================================
    # Send
    # =========================================================================

    @staticmethod
    def check_content(content: MessageCreate) -> Tuple[Optional[str], Optional[str]]:
        """
        I/O 없이 본문 검사 후 (text, image) 반환

        Raises:
            EmptyMessageException, ValidationException
        """
        text = _normalize_text(content.text)
        image = content.image or None
        if text is None and image is None:
            raise EmptyMessageException()
        if text is not None:
            Validator.validate_message_text(text)
        return text, image

    async def send(self, sender_id: str, receiver_id: str, content: MessageCreate) -> MessageRecord:
        """
        메시지 전송

        1. 텍스트/이미지가 모두 없으면 I/O 없이 EmptyMessageException
        2. 이미지가 있으면 먼저 업로드 (실패 시 아무것도 저장하지 않음)
        3. 저장
        4. 수신자와 발신자의 모든 연결에 newMessage 전달 (큐에 넣기만 함)

        Raises:
            EmptyMessageException, MediaUploadFailedException, PersistenceFailedException
        """
        text, image = self.check_content(content)

        image_url = None
        if image:
            image_url = await self.blob_store.upload(image)

        message = await self.store.insert_message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=text,
            image=image_url
        )

        delivered = self.bus.send_to_users([receiver_id, sender_id], NewMessage(message=message))
        logger.info(f"Message {message.id} sent from {sender_id} to {receiver_id}", extra={
            "event_type": "message_sent",
            "user_id": sender_id,
            "message_id": message.id,
            "delivered_connections": delivered
        })
        return message

    # =========================================================================
    # Delete / Clear
    # =========================================================================

    async def delete(self, requester_id: str, message_id: str) -> MessageRecord:
        """
        메시지 삭제 (발신자만 가능)

        Raises:
            ResourceNotFoundException: 메시지가 없음
            AuthorizationException: 요청자가 발신자가 아님
        """
        message = await self.store.find_message(message_id)
        if not message:
            raise message_not_found_error(message_id)

        if message.sender_id != requester_id:
            raise AuthorizationException("You can only delete your own messages")

        deleted = await self.store.delete_message(message_id)
        if not deleted:
            # 조회와 삭제 사이에 다른 요청이 먼저 삭제함
            raise message_not_found_error(message_id)

        self.bus.send_to_users(
            [message.receiver_id, message.sender_id],
            MessageDeleted(
                message_id=message.id,
                sender_id=message.sender_id,
                receiver_id=message.receiver_id
            )
        )
        logger.info(f"Message {message_id} deleted by {requester_id}", extra={
            "event_type": "message_deleted",
            "user_id": requester_id,
            "message_id": message_id
        })
        return message

    async def clear_for_pair(self, requester_id: str, other_user_id: str) -> int:
        """
        요청자가 상대에게 보낸 메시지만 모두 삭제

        Returns:
            int: 실제 삭제된 개수
        """
        deleted_count = await self.store.delete_many(requester_id, other_user_id)

        self.bus.send_to_users(
            [other_user_id, requester_id],
            MessagesCleared(
                sender_id=requester_id,
                receiver_id=other_user_id,
                deleted_count=deleted_count
            )
        )
        logger.info(f"Cleared {deleted_count} messages from {requester_id} to {other_user_id}", extra={
            "event_type": "messages_cleared",
            "user_id": requester_id
        })
        return deleted_count


def get_message_gateway(
    hub: RealtimeHub = Depends(get_realtime_hub),
    store: MessageStore = Depends(get_message_store),
    blob_store: BlobStore = Depends(get_blob_store)
) -> MessageGateway:
    """FastAPI 의존성: 앱의 이벤트 버스에 묶인 MessageGateway"""
    return MessageGateway(store, hub.bus, blob_store)
