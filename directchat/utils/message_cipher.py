"""
메시지 본문 암호화 (저장 시에만)

text와 image URL은 JWE compact 문자열(dir + A256GCM)로 저장되고 읽을 때 복호화됩니다.
키는 secret_key의 SHA-256 다이제스트이므로 secret_key를 바꾸면 기존 메시지는 읽을 수 없습니다.
"""

import hashlib
from typing import Optional

from jose import jwe
from jose.constants import ALGORITHMS
from jose.exceptions import JWEError

from directchat.core.config import settings
from directchat.core.logging import get_logger

logger = get_logger(__name__)


class MessageCipher:
    """저장용 메시지 필드 암호화/복호화"""

    def __init__(self, secret_key: str):
        self._key = hashlib.sha256(secret_key.encode("utf-8")).digest()

    def encrypt(self, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        token = jwe.encrypt(
            value.encode("utf-8"),
            self._key,
            algorithm=ALGORITHMS.DIR,
            encryption=ALGORITHMS.A256GCM
        )
        return token.decode("ascii") if isinstance(token, bytes) else token

    def decrypt(self, value: Optional[str]) -> Optional[str]:
        """
        복호화

        키가 다르거나 변조된 값이면 None을 반환합니다 (메시지 자체는 조회됨).
        """
        if value is None:
            return None
        try:
            plaintext = jwe.decrypt(value, self._key)
        except JWEError as e:
            logger.warning(f"Stored message field could not be decrypted: {e}")
            return None
        return plaintext.decode("utf-8")


message_cipher = MessageCipher(settings.secret_key)
