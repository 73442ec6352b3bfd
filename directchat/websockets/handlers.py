from typing import Any, Dict

from directchat.core.errors import ValidationException
from directchat.core.logging import get_logger
from directchat.domain.events import ErrorNotice, Pong, UserTyping
from directchat.schemas.presence import PresenceStatus
from directchat.websockets.hub import RealtimeHub

logger = get_logger(__name__)


class WebSocketMessageHandler:
    """클라이언트 -> 서버 프레임 처리"""

    def __init__(self, hub: RealtimeHub):
        self.hub = hub

    async def handle_message(self, connection_id: str, user_id: str, frame: Dict[str, Any]):
        """
        WebSocket으로 받은 프레임을 처리합니다.

        Args:
            connection_id: 프레임을 보낸 연결
            user_id: 핸드셰이크에서 인증된 사용자
            frame: {"type": ..., "data": {...}}
        """
        if not isinstance(frame, dict):
            self.send_error(connection_id, "invalid_frame", "Frame must be a JSON object")
            return

        message_type = frame.get("type")
        data = frame.get("data") or {}

        if message_type == "typing":
            self._handle_typing(connection_id, user_id, data)
        elif message_type == "updatePresence":
            self._handle_update_presence(connection_id, user_id, data)
        elif message_type == "ping":
            self._handle_ping(connection_id, user_id)
        else:
            logger.warning(f"Unknown message type: {message_type} from user {user_id}")
            self.send_error(connection_id, "unknown_message_type", f"Unknown message type: {message_type}")

    def _handle_typing(self, connection_id: str, user_id: str, data: Dict[str, Any]):
        """타이핑 상태를 상대의 모든 연결에 전달"""
        receiver_id = data.get("receiverId")
        if not receiver_id:
            self.send_error(connection_id, "invalid_frame", "receiverId is required")
            return

        self.hub.bus.send_to_user(
            receiver_id,
            UserTyping(sender_id=user_id, is_typing=bool(data.get("isTyping", False)))
        )

    def _handle_update_presence(self, connection_id: str, user_id: str, data: Dict[str, Any]):
        """명시적 presence 변경 (online / away / busy)"""
        try:
            status = PresenceStatus(data.get("status"))
            self.hub.presence.update_presence(user_id, status)
        except ValueError:
            self.send_error(connection_id, "invalid_status", "Status must be one of: online, away, busy")
        except ValidationException as e:
            self.send_error(connection_id, e.error, e.message)

    def _handle_ping(self, connection_id: str, user_id: str):
        """활동 시간 갱신 + pong"""
        self.hub.presence.touch(user_id)
        self.hub.bus.send_to_connection(connection_id, Pong())

    def send_error(self, connection_id: str, error_code: str, message: str):
        self.hub.bus.send_to_connection(connection_id, ErrorNotice(error_code=error_code, message=message))
