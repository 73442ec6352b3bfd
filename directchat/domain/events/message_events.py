"""
Message Delivery Events
"""

from dataclasses import dataclass
from .base import DeliveryEvent
from directchat.schemas.message import MessageRecord


@dataclass(frozen=True)
class NewMessage(DeliveryEvent):
    """새 메시지 이벤트"""
    event_name = "newMessage"

    message: MessageRecord

    def to_payload(self):
        return self.message.to_wire()


@dataclass(frozen=True)
class MessageDeleted(DeliveryEvent):
    """메시지 삭제 이벤트"""
    event_name = "messageDeleted"

    message_id: str
    sender_id: str
    receiver_id: str

    def to_payload(self):
        return {
            "messageId": self.message_id,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id
        }


@dataclass(frozen=True)
class MessagesCleared(DeliveryEvent):
    """대화 정리 이벤트 (sender가 보낸 메시지만 삭제됨)"""
    event_name = "messagesCleared"

    sender_id: str
    receiver_id: str
    deleted_count: int

    def to_payload(self):
        return {
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
            "deletedCount": self.deleted_count
        }


@dataclass(frozen=True)
class UserTyping(DeliveryEvent):
    """타이핑 표시 이벤트"""
    event_name = "userTyping"

    sender_id: str
    is_typing: bool

    def to_payload(self):
        return {"senderId": self.sender_id, "isTyping": self.is_typing}
