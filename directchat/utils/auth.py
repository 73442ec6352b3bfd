"""
신원 토큰 / 비밀번호 해싱

토큰은 HS256 JWT이며 sub에 user_id, type에 "access"를 담습니다.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from directchat.core.config import settings
from directchat.core.errors import InvalidHandshakeException

TOKEN_TYPE = "access"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt는 CPU를 오래 쓰므로 이벤트 루프 밖에서 실행
_bcrypt_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="bcrypt")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


async def get_password_hash_async(password: str) -> str:
    return await asyncio.get_running_loop().run_in_executor(_bcrypt_pool, get_password_hash, password)


async def verify_password_async(plain_password: str, password_hash: str) -> bool:
    return await asyncio.get_running_loop().run_in_executor(
        _bcrypt_pool, verify_password, plain_password, password_hash
    )


def create_access_token(claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """claims + exp + type=access 로 서명"""
    lifetime = expires_delta if expires_delta is not None else timedelta(hours=settings.access_token_expire_hours)
    payload = {**claims, "exp": datetime.now(timezone.utc) + lifetime, "type": TOKEN_TYPE}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """서명/만료/type 이 유효하면 payload, 아니면 None"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    return payload if payload.get("type") == TOKEN_TYPE else None


class Authenticator:
    """
    서명된 신원 토큰의 발급/검증

    실시간 코어는 이 클래스가 검증한 user_id만 신뢰합니다.
    """

    def __init__(self, expires_delta: Optional[timedelta] = None):
        self.expires_delta = expires_delta

    def issue(self, user_id: str) -> str:
        return create_access_token({"sub": user_id}, self.expires_delta)

    def verify(self, token: Optional[str]) -> str:
        """
        토큰을 검증하고 user_id를 반환합니다.

        Raises:
            InvalidHandshakeException: 토큰 누락, 서명/만료/type 오류, sub 누락
        """
        if not token:
            raise InvalidHandshakeException("Missing identity token")

        payload = decode_access_token(token)
        if payload is None:
            raise InvalidHandshakeException("Invalid or expired token")

        user_id = payload.get("sub")
        if not user_id:
            raise InvalidHandshakeException("Token missing user ID (sub)")
        return str(user_id)


authenticator = Authenticator()
