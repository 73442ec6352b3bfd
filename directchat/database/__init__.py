"""
저장소 연결 관리

- MySQL: 사용자 (UserStore)
- MongoDB: 메시지 (MessageStore)
"""

from directchat.core.logging import get_logger
from .mysql import create_user_tables, dispose_mysql_engine, get_async_session, ping_mysql
from .mongodb import close_message_store, init_message_store, ping_mongodb

logger = get_logger(__name__)


async def init_databases():
    """앱 시작 시 두 저장소 초기화 (실패하면 시작 중단)"""
    await create_user_tables()
    await init_message_store()
    logger.info("All stores initialized")


async def close_databases():
    await dispose_mysql_engine()
    await close_message_store()


async def check_database_health() -> dict:
    """저장소별 연결 상태"""
    mysql_ok = await ping_mysql()
    mongo_ok = await ping_mongodb()
    return {
        "mysql": mysql_ok,
        "mongodb": mongo_ok,
        "overall": mysql_ok and mongo_ok
    }


__all__ = [
    "init_databases",
    "close_databases",
    "check_database_health",
    "get_async_session",
]
