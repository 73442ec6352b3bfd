"""
User store layer for MySQL operations.
"""

import asyncio
from typing import List, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from directchat.core.config import settings
from directchat.core.errors import PersistenceFailedException, email_already_exists_error
from directchat.core.logging import get_logger
from directchat.database.mysql import get_async_session
from directchat.models.users import User

logger = get_logger(__name__)


class UserStore:
    """사용자 조회/생성 (SQLAlchemy)"""

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = settings.store_query_timeout_seconds if timeout is None else timeout

    async def _run(self, operation: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"User store {operation} timed out after {self.timeout}s")
            raise PersistenceFailedException(operation, "Store query timed out, please retry shortly")
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"User store {operation} failed: {e}")
            raise PersistenceFailedException(operation)

    async def find_user(self, user_id: str) -> Optional[User]:
        """사용자 ID로 조회"""
        return await self._run("find_user", self.db.get(User, user_id))

    async def find_user_by_email(self, email: str) -> Optional[User]:
        """이메일로 조회"""
        result = await self._run(
            "find_user_by_email",
            self.db.execute(select(User).where(User.email == email))
        )
        return result.scalar_one_or_none()

    async def list_users_except(self, user_id: str) -> List[User]:
        """나를 제외한 모든 사용자 (사이드바)"""
        result = await self._run(
            "list_users_except",
            self.db.execute(select(User).where(User.id != user_id).order_by(User.full_name))
        )
        return list(result.scalars().all())

    async def create_user(self, email: str, full_name: str, password_hash: str) -> User:
        """사용자 생성"""
        user = User(email=email, full_name=full_name, password_hash=password_hash)
        self.db.add(user)
        try:
            await self._run("create_user", self.db.commit())
        except IntegrityError:
            await self.db.rollback()
            raise email_already_exists_error()
        await self._run("create_user", self.db.refresh(user))
        return user

    async def update_profile(
        self,
        user: User,
        full_name: Optional[str] = None,
        profile_pic: Optional[str] = None
    ) -> User:
        """프로필 수정"""
        if full_name:
            user.full_name = full_name
        if profile_pic:
            user.profile_pic = profile_pic
        await self._run("update_profile", self.db.commit())
        await self._run("update_profile", self.db.refresh(user))
        return user


def get_user_store(db: AsyncSession = Depends(get_async_session)) -> UserStore:
    """FastAPI 의존성: 요청 세션에 묶인 UserStore"""
    return UserStore(db)
