import uuid
from datetime import timedelta
from typing import Optional

from starlette.requests import HTTPConnection

from directchat.core.logging import get_logger, log_websocket_event
from directchat.websockets.event_bus import EventBus, FrameSender
from directchat.websockets.presence import PresenceTracker
from directchat.websockets.registry import ConnectionRegistry

logger = get_logger(__name__)


class RealtimeHub:
    """
    실시간 전송 구성 요소 묶음 (레지스트리, 이벤트 버스, presence)

    애플리케이션마다 하나씩 만들어 app.state에 두고,
    필요한 곳에는 의존성(get_realtime_hub)으로 명시적으로 전달합니다.
    """

    def __init__(
        self,
        outbox_max_size: Optional[int] = None,
        recently_online_window: Optional[timedelta] = None
    ):
        self.registry = ConnectionRegistry()
        self.bus = EventBus(self.registry, outbox_max_size)
        self.presence = PresenceTracker(self.registry, self.bus, recently_online_window)

    async def open_connection(self, user_id: str, send: FrameSender) -> str:
        """
        새 연결의 송신 채널을 만들고 등록합니다.

        채널을 먼저 붙인 뒤 등록하므로 새 연결도 온라인 목록을 받습니다.

        Returns:
            str: 새 connection_id
        """
        connection_id = uuid.uuid4().hex
        self.bus.attach(connection_id, send)
        try:
            self.presence.connect(user_id, connection_id)
        except Exception:
            await self.bus.detach(connection_id)
            raise

        log_websocket_event(logger, "connected", user_id, connection_id,
                            connection_count=self.registry.connection_count(user_id))
        return connection_id

    async def close_connection(self, connection_id: str):
        """연결 해제. 여러 번 호출해도 안전합니다."""
        user_id = self.registry.user_for(connection_id)
        self.presence.disconnect(connection_id)
        await self.bus.detach(connection_id)

        if user_id:
            log_websocket_event(logger, "disconnected", user_id, connection_id,
                                connection_count=self.registry.connection_count(user_id))

    async def shutdown(self):
        """남아 있는 모든 연결 정리"""
        for connection_id in self.registry.all_connection_ids():
            await self.close_connection(connection_id)


def get_realtime_hub(connection: HTTPConnection) -> RealtimeHub:
    """요청/웹소켓이 속한 앱의 RealtimeHub"""
    return connection.app.state.realtime_hub
