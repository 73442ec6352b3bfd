"""
Client-side conversation state

한 대화 상대와의 메시지 목록을 유지합니다. push 프레임, catch-up 결과,
낙관적 전송 모두 merge_messages 규칙을 거쳐 반영됩니다.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from directchat.core.logging import get_logger
from directchat.reconciliation.merge import merge_messages
from directchat.schemas.message import MessageRecord

logger = get_logger(__name__)

TEMP_ID_PREFIX = "temp-"


class ConversationTimeline:
    """user_id 관점에서 other_user_id 와의 대화"""

    def __init__(self, user_id: str, other_user_id: str, messages: Optional[Iterable[MessageRecord]] = None):
        self.user_id = user_id
        self.other_user_id = other_user_id
        self._messages: List[MessageRecord] = merge_messages([], messages or [])
        # 아직 서버 확인을 받지 못한 낙관적 메시지 id
        self._pending: Set[str] = set()

    @property
    def messages(self) -> List[MessageRecord]:
        return list(self._messages)

    @property
    def pending_ids(self) -> Set[str]:
        return set(self._pending)

    @property
    def last_message_time(self) -> Optional[datetime]:
        """catch-up 커서: 서버에서 확정된 메시지 중 가장 최근 created_at"""
        confirmed = [m.created_at for m in self._messages if m.id not in self._pending]
        return max(confirmed) if confirmed else None

    def _belongs_here(self, sender_id: str, receiver_id: str) -> bool:
        return {sender_id, receiver_id} == {self.user_id, self.other_user_id}

    # =========================================================================
    # 병합
    # =========================================================================

    def apply_messages(self, messages: Iterable[MessageRecord]) -> int:
        """
        메시지 목록 병합 (catch-up 결과 등)

        Returns:
            int: 새로 추가된 메시지 수
        """
        relevant = [m for m in messages if self._belongs_here(m.sender_id, m.receiver_id)]
        before = len(self._messages)
        self._messages = merge_messages(self._messages, relevant)
        return len(self._messages) - before

    def apply_frame(self, frame: Dict[str, Any]) -> bool:
        """
        실시간 프레임 ({"type", "data"}) 반영

        Returns:
            bool: 목록이 바뀌었는지 여부
        """
        event_type = frame.get("type")
        data = frame.get("data")

        if event_type == "newMessage":
            return self.apply_messages([MessageRecord.model_validate(data)]) > 0

        if event_type == "messageDeleted":
            if not self._belongs_here(data["senderId"], data["receiverId"]):
                return False
            return self._remove(lambda m: m.id == data["messageId"]) > 0

        if event_type == "messagesCleared":
            sender_id, receiver_id = data["senderId"], data["receiverId"]
            if not self._belongs_here(sender_id, receiver_id):
                return False
            removed = self._remove(
                lambda m: m.sender_id == sender_id and m.receiver_id == receiver_id
                and m.id not in self._pending
            )
            return removed > 0

        return False

    def _remove(self, predicate) -> int:
        before = len(self._messages)
        self._messages = [m for m in self._messages if not predicate(m)]
        return before - len(self._messages)

    # =========================================================================
    # 낙관적 전송
    # =========================================================================

    def add_optimistic(
        self,
        text: Optional[str] = None,
        image: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> MessageRecord:
        """서버 응답 전에 화면에 보여줄 임시 메시지 추가"""
        message = MessageRecord(
            id=f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}",
            sender_id=self.user_id,
            receiver_id=self.other_user_id,
            text=text,
            image=image,
            created_at=now or datetime.now(timezone.utc)
        )
        self._pending.add(message.id)
        self._messages.append(message)
        self._messages.sort(key=lambda m: m.created_at)
        return message

    def confirm(self, temp_id: str, confirmed: MessageRecord):
        """임시 메시지를 서버에서 확정된 메시지로 교체"""
        self._pending.discard(temp_id)
        self._remove(lambda m: m.id == temp_id)
        self._messages = merge_messages(self._messages, [confirmed])

    def rollback(self, temp_id: str) -> bool:
        """전송 실패한 임시 메시지 제거"""
        if temp_id not in self._pending:
            return False
        self._pending.discard(temp_id)
        self._remove(lambda m: m.id == temp_id)
        logger.info(f"Rolled back optimistic message {temp_id}")
        return True
