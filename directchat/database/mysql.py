"""
사용자 저장소 (MySQL, SQLAlchemy async)

엔진은 모듈 import 시점에 만들어지며, 요청마다 get_async_session으로 세션을 받습니다.
"""

import asyncio
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from directchat.core.config import settings
from directchat.core.logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()

engine = create_async_engine(
    settings.mysql_url,
    echo=settings.debug,
    pool_size=10,
    max_overflow=20,
    pool_recycle=3600,
    pool_pre_ping=True,
    # Store 호출 시간 제한보다 오래 커넥션을 기다리지 않음
    pool_timeout=settings.store_query_timeout_seconds,
)

SessionFactory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI 의존성: 요청 단위 세션 (예외 시 롤백)"""
    async with SessionFactory() as session:
        try:
            yield session
        except SQLAlchemyError:
            await session.rollback()
            raise


async def create_user_tables():
    """users 테이블 생성 (이미 있으면 유지)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("User tables ready")


async def ping_mysql() -> bool:
    """SELECT 1 이 시간 제한 안에 성공하는지"""
    async def _ping():
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(_ping(), timeout=settings.store_query_timeout_seconds)
        return True
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
        logger.warning(f"MySQL ping failed: {type(e).__name__}: {e}")
        return False


async def dispose_mysql_engine():
    await engine.dispose()
    logger.info("MySQL engine disposed")
