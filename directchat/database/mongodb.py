"""
메시지 저장소 (MongoDB, Motor + Beanie)
"""

import asyncio
from typing import Optional

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from directchat.core.config import settings
from directchat.core.logging import get_logger
from directchat.models.messages import Message

logger = get_logger(__name__)

_client: Optional[AsyncIOMotorClient] = None


def _create_client() -> AsyncIOMotorClient:
    timeout_ms = int(settings.store_query_timeout_seconds * 1000)
    return AsyncIOMotorClient(
        settings.mongo_url,
        maxPoolSize=10,
        minPoolSize=1,
        waitQueueTimeoutMS=timeout_ms,
        serverSelectionTimeoutMS=timeout_ms,
        tz_aware=True,  # created_at을 UTC aware datetime으로 반환
    )


async def init_message_store():
    """Motor 클라이언트 생성 후 Message 문서 등록 (인덱스 포함)"""
    global _client
    _client = _create_client()
    await init_beanie(
        database=_client[settings.mongo_db_name],
        document_models=[Message]
    )
    logger.info(f"Message store ready (db={settings.mongo_db_name})")


async def ping_mongodb() -> bool:
    if _client is None:
        return False
    try:
        await asyncio.wait_for(
            _client.admin.command("ping"),
            timeout=settings.store_query_timeout_seconds
        )
        return True
    except (PyMongoError, asyncio.TimeoutError) as e:
        logger.warning(f"MongoDB ping failed: {type(e).__name__}: {e}")
        return False


async def close_message_store():
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB client closed")
