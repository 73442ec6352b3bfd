import asyncio
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from directchat.core.config import settings
from directchat.core.logging import get_logger, log_delivery_failure
from directchat.domain.events import DeliveryEvent
from directchat.websockets.registry import ConnectionRegistry

logger = get_logger(__name__)

# WebSocket.send_json 과 같은 형태의 전송 함수
FrameSender = Callable[[Dict[str, Any]], Awaitable[None]]


class OutboundChannel:
    """
    연결 하나의 송신 큐

    큐 하나를 writer 태스크 하나가 비우므로, 같은 연결에 대해서는
    offer()가 호출된 순서대로 전송됩니다 (연결별 FIFO).
    """

    def __init__(self, connection_id: str, send: FrameSender, max_size: int = 0):
        self.connection_id = connection_id
        self._send = send
        self._queue: "asyncio.Queue[DeliveryEvent]" = asyncio.Queue(maxsize=max_size)
        self._task: Optional[asyncio.Task] = None
        self.closed = False

    def start(self):
        """writer 태스크 시작 (실행 중인 이벤트 루프 필요)"""
        if self._task is None:
            self._task = asyncio.create_task(self._drain())

    def offer(self, event: DeliveryEvent) -> bool:
        """이벤트를 큐에 넣습니다. 대기하지 않으며, 실패는 경고 로그로만 남깁니다."""
        if self.closed:
            log_delivery_failure(logger, event.name, self.connection_id, "channel closed")
            return False

        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            log_delivery_failure(logger, event.name, self.connection_id, "outbound queue full")
            return False

    async def _drain(self):
        while True:
            event = await self._queue.get()
            try:
                await self._send(event.to_frame())
            except Exception as e:
                # 끊어진 연결은 자체 disconnect 경로에서 정리됨
                log_delivery_failure(logger, event.name, self.connection_id, str(e) or type(e).__name__)
                self.closed = True
                self._discard_pending()
                return
            finally:
                self._queue.task_done()

    def _discard_pending(self):
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    async def flush(self):
        """큐에 쌓인 이벤트가 모두 처리될 때까지 대기"""
        if self._task is None or self._task.done():
            return
        await self._queue.join()

    async def close(self):
        """writer 태스크를 중단하고 남은 이벤트를 버립니다."""
        self.closed = True
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._discard_pending()


class EventBus:
    """
    user_id 단위 fan-out

    전송 대상은 호출 시점의 레지스트리 스냅샷으로 결정되므로,
    호출 이후에 등록된 연결은 해당 이벤트를 받지 않습니다.
    전송 실패는 호출자에게 전파되지 않습니다.
    """

    def __init__(self, registry: ConnectionRegistry, outbox_max_size: Optional[int] = None):
        self.registry = registry
        self.outbox_max_size = settings.outbox_max_size if outbox_max_size is None else outbox_max_size
        # 연결별 송신 채널: {connection_id: OutboundChannel}
        self._channels: Dict[str, OutboundChannel] = {}

    def attach(self, connection_id: str, send: FrameSender) -> OutboundChannel:
        """연결의 송신 채널을 만들고 writer를 시작합니다."""
        channel = OutboundChannel(connection_id, send, self.outbox_max_size)
        self._channels[connection_id] = channel
        channel.start()
        return channel

    async def detach(self, connection_id: str):
        """송신 채널 제거 (알 수 없는 연결이면 무시)"""
        channel = self._channels.pop(connection_id, None)
        if channel:
            await channel.close()

    def channel(self, connection_id: str) -> Optional[OutboundChannel]:
        return self._channels.get(connection_id)

    def send_to_connection(self, connection_id: str, event: DeliveryEvent) -> bool:
        """특정 연결 하나에 전송"""
        channel = self._channels.get(connection_id)
        if channel is None:
            log_delivery_failure(logger, event.name, connection_id, "no outbound channel")
            return False
        return channel.offer(event)

    def send_to_user(self, user_id: str, event: DeliveryEvent) -> int:
        """
        사용자의 모든 연결에 전송합니다.

        Returns:
            int: 이벤트가 큐에 들어간 연결 수
        """
        return self.send_to_users([user_id], event)

    def send_to_users(self, user_ids: Iterable[str], event: DeliveryEvent) -> int:
        """여러 사용자에게 전송 (같은 연결에는 한 번만)"""
        connection_ids = set()
        for user_id in user_ids:
            connection_ids.update(self.registry.connections_for(user_id))

        delivered = 0
        for connection_id in connection_ids:
            if self.send_to_connection(connection_id, event):
                delivered += 1
        return delivered

    def broadcast_all(self, event: DeliveryEvent, exclude: Iterable[str] = ()) -> int:
        """등록된 모든 연결에 전송 (exclude의 connection_id 제외)"""
        excluded = set(exclude)
        delivered = 0
        for connection_id in self.registry.all_connection_ids():
            if connection_id in excluded:
                continue
            if self.send_to_connection(connection_id, event):
                delivered += 1
        return delivered

    async def flush(self):
        """모든 채널의 대기 중인 이벤트 전송 완료까지 대기"""
        for channel in list(self._channels.values()):
            await channel.flush()
