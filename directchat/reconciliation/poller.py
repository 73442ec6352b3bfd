"""
Polling fallback

push가 grace_period 이상 조용하면 interval마다 catch-up을 호출합니다.
poll 결과와 push 프레임은 같은 병합 규칙을 거치므로 둘이 동시에 동작해도 안전합니다.
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from directchat.core.logging import get_logger
from directchat.reconciliation.http_client import CatchUpFailed
from directchat.reconciliation.timeline import ConversationTimeline
from directchat.schemas.message import MessageRecord

logger = get_logger(__name__)

Fetcher = Callable[[Optional[datetime]], Awaitable[List[MessageRecord]]]

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_GRACE_PERIOD = 5.0


class CatchUpPoller:
    """대화 하나에 대한 catch-up 폴링"""

    def __init__(
        self,
        timeline: ConversationTimeline,
        fetcher: Fetcher,
        interval: float = DEFAULT_POLL_INTERVAL,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        clock: Callable[[], float] = time.monotonic
    ):
        self.timeline = timeline
        self.fetcher = fetcher
        self.interval = interval
        self.grace_period = grace_period
        self._clock = clock
        self._last_push: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

    def mark_push_alive(self):
        self._last_push = self._clock()

    def on_frame(self, frame: Dict[str, Any]) -> bool:
        """push로 받은 프레임 반영"""
        self.mark_push_alive()
        return self.timeline.apply_frame(frame)

    def push_is_silent(self) -> bool:
        if self._last_push is None:
            return True
        return self._clock() - self._last_push > self.grace_period

    async def poll_once(self) -> int:
        """
        마지막 커서 이후 메시지를 가져와 병합

        Returns:
            int: 새로 추가된 메시지 수
        """
        messages = await self.fetcher(self.timeline.last_message_time)
        return self.timeline.apply_messages(messages)

    async def run(self):
        while True:
            if self.push_is_silent():
                try:
                    added = await self.poll_once()
                    if added:
                        logger.debug(f"Catch-up poll merged {added} messages")
                except CatchUpFailed as e:
                    if not e.retryable:
                        logger.error(f"Catch-up polling stopped: {e}")
                        raise
                    logger.warning(f"Catch-up poll failed, retrying in {self.interval}s: {e}")
            await asyncio.sleep(self.interval)

    def start(self):
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())

    async def stop(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
