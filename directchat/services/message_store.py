"""
Message store layer

MessageGateway와 catch-up은 MessageStore 인터페이스만 사용합니다.
MongoMessageStore는 Beanie(MongoDB) 구현이며, 모든 쿼리는 시간 제한을 가지고
실패/시간 초과는 PersistenceFailedException으로 변환됩니다.
text/image는 MessageCipher로 암호화되어 저장되고, 인터페이스 밖으로는 평문만 나갑니다.
"""

import abc
import asyncio
from datetime import datetime
from typing import Awaitable, List, Optional, TypeVar

from beanie import PydanticObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from directchat.core.config import settings
from directchat.core.errors import PersistenceFailedException
from directchat.core.logging import get_logger
from directchat.models.messages import Message
from directchat.schemas.message import MessageRecord
from directchat.utils.message_cipher import MessageCipher, message_cipher

logger = get_logger(__name__)

T = TypeVar("T")


class MessageStore(abc.ABC):
    """메시지 저장소 인터페이스"""

    @abc.abstractmethod
    async def find_messages(
        self,
        user_a: str,
        user_b: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[MessageRecord]:
        """
        두 사용자 사이의 메시지를 created_at 오름차순으로 조회합니다.

        since가 있으면 created_at > since 인 메시지만,
        limit가 있으면 가장 최근 limit개만 (여전히 오름차순으로) 반환합니다.
        """

    @abc.abstractmethod
    async def insert_message(
        self,
        sender_id: str,
        receiver_id: str,
        text: Optional[str],
        image: Optional[str]
    ) -> MessageRecord:
        """메시지 저장 (id, created_at은 저장소가 부여)"""

    @abc.abstractmethod
    async def find_message(self, message_id: str) -> Optional[MessageRecord]:
        """메시지 ID로 조회"""

    @abc.abstractmethod
    async def delete_message(self, message_id: str) -> bool:
        """메시지 삭제. 삭제되었으면 True"""

    @abc.abstractmethod
    async def delete_many(self, sender_id: str, receiver_id: str) -> int:
        """sender -> receiver 방향 메시지만 삭제하고 삭제 개수를 반환"""


def _to_record(message: Message, cipher: MessageCipher) -> MessageRecord:
    return MessageRecord(
        id=str(message.id),
        sender_id=message.sender_id,
        receiver_id=message.receiver_id,
        text=cipher.decrypt(message.text),
        image=cipher.decrypt(message.image),
        created_at=message.created_at,
        updated_at=message.updated_at
    )


def _pair_filter(user_a: str, user_b: str) -> dict:
    return {
        "$or": [
            {"sender_id": user_a, "receiver_id": user_b},
            {"sender_id": user_b, "receiver_id": user_a},
        ]
    }


class MongoMessageStore(MessageStore):
    """Beanie 기반 MessageStore"""

    def __init__(self, timeout: Optional[float] = None, cipher: Optional[MessageCipher] = None):
        self.timeout = settings.store_query_timeout_seconds if timeout is None else timeout
        self.cipher = cipher or message_cipher

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        """시간 제한 + 오류 변환"""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Message store {operation} timed out after {self.timeout}s")
            raise PersistenceFailedException(operation, "Store query timed out, please retry shortly")
        except PyMongoError as e:
            logger.error(f"Message store {operation} failed: {e}")
            raise PersistenceFailedException(operation)

    async def find_messages(
        self,
        user_a: str,
        user_b: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[MessageRecord]:
        query = _pair_filter(user_a, user_b)
        if since is not None:
            query = {"$and": [query, {"created_at": {"$gt": since}}]}

        if limit:
            # 최신 limit개를 가져와서 오름차순으로 되돌림
            cursor = Message.find(query).sort([("created_at", DESCENDING)]).limit(limit)
            messages = await self._run("find_messages", cursor.to_list())
            messages.reverse()
        else:
            cursor = Message.find(query).sort([("created_at", ASCENDING)])
            messages = await self._run("find_messages", cursor.to_list())

        return [_to_record(message, self.cipher) for message in messages]

    async def insert_message(
        self,
        sender_id: str,
        receiver_id: str,
        text: Optional[str],
        image: Optional[str]
    ) -> MessageRecord:
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=self.cipher.encrypt(text),
            image=self.cipher.encrypt(image)
        )
        await self._run("insert_message", message.insert())
        # 호출자와 fan-out에는 평문을 돌려줌
        return MessageRecord(
            id=str(message.id),
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=text,
            image=image,
            created_at=message.created_at,
            updated_at=message.updated_at
        )

    async def _get(self, message_id: str) -> Optional[Message]:
        try:
            object_id = PydanticObjectId(message_id)
        except (InvalidId, TypeError):
            return None
        return await self._run("find_message", Message.get(object_id))

    async def find_message(self, message_id: str) -> Optional[MessageRecord]:
        message = await self._get(message_id)
        return _to_record(message, self.cipher) if message else None

    async def delete_message(self, message_id: str) -> bool:
        message = await self._get(message_id)
        if not message:
            return False
        result = await self._run("delete_message", message.delete())
        return result is None or result.deleted_count > 0

    async def delete_many(self, sender_id: str, receiver_id: str) -> int:
        result = await self._run(
            "delete_many",
            Message.find({"sender_id": sender_id, "receiver_id": receiver_id}).delete()
        )
        return result.deleted_count if result else 0


def get_message_store() -> MessageStore:
    """FastAPI 의존성: 기본 MessageStore"""
    return MongoMessageStore()
