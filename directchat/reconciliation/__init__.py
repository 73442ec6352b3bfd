"""
메시지 목록 재동기화

- catch_up: 서버 측 since 커서 조회
- merge: push/poll 공통 중복 판정 규칙
- timeline: 클라이언트 대화 상태 (낙관적 전송 포함)
- poller / http_client: 폴링 fallback
"""

from .merge import DUPLICATE_WINDOW, is_duplicate, merge_messages
from .catch_up import catch_up
from .timeline import ConversationTimeline
from .http_client import CatchUpClient, CatchUpFailed
from .poller import CatchUpPoller

__all__ = [
    "DUPLICATE_WINDOW",
    "is_duplicate",
    "merge_messages",
    "catch_up",
    "ConversationTimeline",
    "CatchUpClient",
    "CatchUpFailed",
    "CatchUpPoller",
]
