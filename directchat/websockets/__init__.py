"""
WebSocket 실시간 전송 모듈

주요 구성 요소:
- registry: user_id <-> 연결 매핑
- presence: 연결 전이를 presence 이벤트로 변환
- event_bus: 연결별 FIFO 송신 큐와 fan-out
- hub: 위 구성 요소 묶음 (app.state.realtime_hub)
- auth / handlers: 핸드셰이크 인증과 클라이언트 프레임 처리
"""

from .registry import Connection, ConnectionRegistry
from .event_bus import EventBus, OutboundChannel
from .presence import PresenceTracker
from .hub import RealtimeHub, get_realtime_hub

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "EventBus",
    "OutboundChannel",
    "PresenceTracker",
    "RealtimeHub",
    "get_realtime_hub",
]
