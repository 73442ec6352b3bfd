"""
Server-side catch-up query
"""

from datetime import datetime, timezone
from typing import List, Optional

from directchat.core.config import settings
from directchat.core.logging import get_logger
from directchat.schemas.message import MessageRecord
from directchat.services.message_store import MessageStore

logger = get_logger(__name__)


async def catch_up(
    store: MessageStore,
    user_id: str,
    other_user_id: str,
    since: Optional[datetime] = None,
    limit: Optional[int] = None
) -> List[MessageRecord]:
    """
    두 사용자 사이에서 놓친 메시지 조회 (created_at 오름차순)

    - since가 있으면 created_at > since 인 메시지 전체
    - since가 없으면 가장 최근 catch_up_limit개

    Raises:
        PersistenceFailedException: Store 실패/시간 초과
    """
    if since is not None and since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)

    if since is None:
        messages = await store.find_messages(
            user_id, other_user_id, limit=limit or settings.catch_up_limit
        )
    else:
        messages = await store.find_messages(user_id, other_user_id, since=since)

    logger.debug(f"Catch-up {user_id} <-> {other_user_id} since {since}: {len(messages)} messages")
    return messages
