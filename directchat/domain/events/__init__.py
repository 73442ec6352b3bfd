"""
Delivery Events

실시간 채널로 전달되는 이벤트 정의
"""

from .base import DeliveryEvent
from .message_events import NewMessage, MessageDeleted, MessagesCleared, UserTyping
from .presence_events import PresenceChanged, OnlineUsers
from .connection_events import Pong, ErrorNotice

__all__ = [
    'DeliveryEvent',
    'NewMessage',
    'MessageDeleted',
    'MessagesCleared',
    'UserTyping',
    'PresenceChanged',
    'OnlineUsers',
    'Pong',
    'ErrorNotice',
]
