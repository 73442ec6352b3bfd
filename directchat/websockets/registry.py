import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional, Set, Tuple

from directchat.core.errors import InvalidHandshakeException


@dataclass(frozen=True)
class Connection:
    """라이브 소켓 하나 (레지스트리 소유, 저장되지 않음)"""
    connection_id: str
    user_id: str
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ConnectionRegistry:
    """
    user_id <-> connection_id 양방향 매핑

    한 사용자가 여러 기기로 동시에 연결할 수 있으므로 user_id마다 connection_id 집합을 유지합니다.
    모든 변경은 하나의 락 안에서 원자적으로 수행되며, 락 안에서는 I/O를 하지 않습니다.
    """

    def __init__(self):
        self._lock = threading.Lock()
        # 사용자별 연결: {user_id: {connection_id, ...}}
        self._user_connections: Dict[str, Set[str]] = {}
        # 연결 정보: {connection_id: Connection}
        self._connections: Dict[str, Connection] = {}

    def register(self, user_id: str, connection_id: str) -> bool:
        """
        연결을 등록합니다. 같은 연결을 다시 등록해도 상태는 변하지 않습니다.

        Returns:
            bool: 이 등록으로 사용자가 offline -> online 으로 바뀌었으면 True

        Raises:
            InvalidHandshakeException: user_id 또는 connection_id가 비어 있는 경우
        """
        if not user_id:
            raise InvalidHandshakeException("User ID is required to register a connection")
        if not connection_id:
            raise InvalidHandshakeException("Connection ID is required")

        with self._lock:
            existing = self._connections.get(connection_id)
            if existing is not None:
                if existing.user_id != user_id:
                    raise InvalidHandshakeException(
                        "Connection is already registered to another user",
                        details={"connection_id": connection_id}
                    )
                return False

            connection_ids = self._user_connections.setdefault(user_id, set())
            went_online = not connection_ids
            connection_ids.add(connection_id)
            self._connections[connection_id] = Connection(connection_id=connection_id, user_id=user_id)
            return went_online

    def unregister(self, connection_id: str) -> Tuple[Optional[str], bool]:
        """
        연결을 제거합니다. 알 수 없는 connection_id는 무시합니다 (중복 disconnect).

        Returns:
            (user_id, went_offline): 연결 소유자와, 이 연결이 마지막 연결이었는지 여부.
            알 수 없는 연결이면 (None, False)
        """
        with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return None, False

            connection_ids = self._user_connections.get(connection.user_id)
            if connection_ids is None:
                return connection.user_id, False

            connection_ids.discard(connection_id)
            if connection_ids:
                return connection.user_id, False

            # 마지막 연결이면 사용자 자체를 제거
            del self._user_connections[connection.user_id]
            return connection.user_id, True

    def connections_for(self, user_id: str) -> FrozenSet[str]:
        """사용자의 라이브 connection_id 스냅샷 (없으면 빈 집합)"""
        with self._lock:
            return frozenset(self._user_connections.get(user_id, ()))

    def all_online_user_ids(self) -> FrozenSet[str]:
        """연결이 하나 이상 있는 사용자 ID 스냅샷"""
        with self._lock:
            return frozenset(user_id for user_id, ids in self._user_connections.items() if ids)

    def all_connection_ids(self) -> FrozenSet[str]:
        """등록된 모든 connection_id 스냅샷"""
        with self._lock:
            return frozenset(self._connections)

    def connection(self, connection_id: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(connection_id)

    def user_for(self, connection_id: str) -> Optional[str]:
        """연결 소유자 user_id"""
        connection = self.connection(connection_id)
        return connection.user_id if connection else None

    def is_user_connected(self, user_id: str) -> bool:
        """사용자가 연결되어 있는지 확인합니다."""
        with self._lock:
            return bool(self._user_connections.get(user_id))

    def connection_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._user_connections.get(user_id, ()))
