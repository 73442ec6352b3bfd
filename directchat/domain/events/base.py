"""
Delivery Event Base Class
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Dict


@dataclass(frozen=True)
class DeliveryEvent:
    """
    실시간 채널로만 전달되는 이벤트 기본 클래스

    저장되지 않으며, 와이어에서는 {"type": event_name, "data": payload} 프레임이 됩니다.
    """
    event_name: ClassVar[str] = ""

    @property
    def name(self) -> str:
        """와이어 이벤트 이름"""
        return self.event_name

    def to_payload(self) -> Any:
        """와이어 payload"""
        raise NotImplementedError

    def to_frame(self) -> Dict[str, Any]:
        """WebSocket 전송용 프레임"""
        return {"type": self.name, "data": self.to_payload()}
