"""
Presence 추적

레지스트리 전이(연결/해제)를 presence 의미로 변환하고 last_seen_at을 소유합니다.
상태 변경이 있을 때만 이벤트를 내보내므로 이벤트 수는 연결 수가 아니라 전이 수에 비례합니다.
presence는 프로세스 메모리에만 있으며 재시작 시 초기화됩니다.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from directchat.core.config import settings
from directchat.core.errors import ValidationException, ValidationError
from directchat.core.logging import get_logger
from directchat.domain.events import OnlineUsers, PresenceChanged
from directchat.schemas.presence import PresenceRecord, PresenceStatus, DECLARABLE_STATUSES
from directchat.websockets.event_bus import EventBus
from directchat.websockets.registry import ConnectionRegistry

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PresenceTracker:
    """사용자 presence 관리"""

    def __init__(
        self,
        registry: ConnectionRegistry,
        bus: EventBus,
        recently_online_window: Optional[timedelta] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.registry = registry
        self.bus = bus
        self.recently_online_window = recently_online_window or timedelta(
            seconds=settings.recently_online_window_seconds)
        self._clock = clock
        # 전이 판단과 이벤트 발행을 한 번에 처리하기 위한 락
        self._lock = threading.Lock()
        self._last_seen: Dict[str, datetime] = {}
        # 연결 중인 사용자가 선언한 상태 (away, busy 등)
        self._declared: Dict[str, PresenceStatus] = {}

    # =========================================================================
    # 연결 전이
    # =========================================================================

    def connect(self, user_id: str, connection_id: str) -> bool:
        """
        연결을 등록하고, offline -> online 전이일 때만 presence 이벤트를 발행합니다.
        새 연결은 전이 여부와 관계없이 현재 온라인 목록을 받습니다.

        Returns:
            bool: 사용자가 이번 연결로 online이 되었는지 여부
        """
        with self._lock:
            went_online = self.registry.register(user_id, connection_id)
            now = self._clock()
            self._last_seen[user_id] = now

            if went_online:
                self._declared.pop(user_id, None)
                self.bus.broadcast_all(
                    PresenceChanged(user_id=user_id, status=PresenceStatus.ONLINE, last_seen_at=now),
                    exclude=[connection_id]
                )
                self.bus.broadcast_all(self.roster())
                logger.info(f"User {user_id} is now online", extra={
                    "user_id": user_id,
                    "connection_id": connection_id,
                    "event_type": "user_online"
                })
            else:
                self.bus.send_to_connection(connection_id, self.roster())

        return went_online

    def disconnect(self, connection_id: str) -> bool:
        """
        연결을 제거하고, 마지막 연결이었으면 offline 이벤트를 발행합니다.
        알 수 없는 연결(중복 disconnect)은 무시합니다.

        Returns:
            bool: 사용자가 이번 해제로 offline이 되었는지 여부
        """
        with self._lock:
            user_id, went_offline = self.registry.unregister(connection_id)
            if user_id is None:
                return False

            now = self._clock()
            self._last_seen[user_id] = now

            if went_offline:
                self._declared.pop(user_id, None)
                self.bus.broadcast_all(
                    PresenceChanged(user_id=user_id, status=PresenceStatus.OFFLINE, last_seen_at=now)
                )
                self.bus.broadcast_all(self.roster())
                logger.info(f"User {user_id} is now offline", extra={
                    "user_id": user_id,
                    "connection_id": connection_id,
                    "event_type": "user_offline"
                })

        return went_offline

    def update_presence(self, user_id: str, status: PresenceStatus) -> bool:
        """
        연결 중인 사용자의 명시적 상태 변경 (online / away / busy)

        Returns:
            bool: 상태가 실제로 바뀌어 userPresenceUpdate를 발행했는지 여부
        """
        if status not in DECLARABLE_STATUSES:
            raise ValidationException(
                "Invalid presence status",
                validation_errors=[
                    ValidationError(
                        field="status",
                        message="Status must be one of: online, away, busy",
                        value=status.value
                    )
                ]
            )

        with self._lock:
            if not self.registry.is_user_connected(user_id):
                logger.warning(f"Ignoring presence update from disconnected user {user_id}")
                return False

            previous = self._declared.get(user_id, PresenceStatus.ONLINE)
            if previous == status:
                return False

            now = self._clock()
            self._declared[user_id] = status
            self._last_seen[user_id] = now
            self.bus.broadcast_all(
                PresenceChanged(user_id=user_id, status=status, last_seen_at=now, explicit=True)
            )

        return True

    def touch(self, user_id: str):
        """활동 시간 갱신 (ping 등). 이벤트는 발행하지 않습니다."""
        with self._lock:
            if self.registry.is_user_connected(user_id):
                self._last_seen[user_id] = self._clock()

    # =========================================================================
    # 조회 (읽는 시점에 분류)
    # =========================================================================

    def status(self, user_id: str, now: Optional[datetime] = None) -> PresenceRecord:
        """
        사용자 presence 조회

        - 연결이 하나 이상이면 online (또는 선언된 away/busy)
        - 연결이 없고 last_seen_at이 최근 5분 이내면 recently-online
        - 그 외에는 offline
        """
        now = now or self._clock()
        connection_count = self.registry.connection_count(user_id)

        with self._lock:
            last_seen = self._last_seen.get(user_id)
            declared = self._declared.get(user_id)

        if connection_count > 0:
            status = declared or PresenceStatus.ONLINE
        elif last_seen is not None and now - last_seen < self.recently_online_window:
            status = PresenceStatus.RECENTLY_ONLINE
        else:
            status = PresenceStatus.OFFLINE

        return PresenceRecord(
            user_id=user_id,
            status=status,
            last_seen_at=last_seen,
            connection_count=connection_count
        )

    def snapshot(self, now: Optional[datetime] = None) -> List[PresenceRecord]:
        """알려진 모든 사용자의 presence"""
        with self._lock:
            known = set(self._last_seen)
        known.update(self.registry.all_online_user_ids())
        return [self.status(user_id, now) for user_id in sorted(known)]

    def roster(self) -> OnlineUsers:
        """현재 온라인 사용자 목록 이벤트"""
        return OnlineUsers(user_ids=tuple(sorted(self.registry.all_online_user_ids())))
