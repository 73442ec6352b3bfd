from typing import Optional

from fastapi import WebSocket, status

from directchat.core.errors import InvalidHandshakeException
from directchat.core.logging import get_logger
from directchat.utils.auth import authenticator

logger = get_logger(__name__)


def extract_token(websocket: WebSocket, token: Optional[str] = None) -> Optional[str]:
    """
    핸드셰이크 토큰 추출 (쿼리 파라미터 token 우선, 없으면 Authorization: Bearer 헤더)
    """
    if token:
        return token

    authorization = websocket.headers.get("Authorization")
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):]
    return None


def verify_handshake(token: Optional[str], claimed_user_id: Optional[str] = None) -> str:
    """
    토큰을 검증하고 user_id를 반환합니다.

    Raises:
        InvalidHandshakeException: 토큰이 잘못되었거나 claimed_user_id가 토큰의 사용자와 다른 경우
    """
    user_id = authenticator.verify(token)
    if claimed_user_id and claimed_user_id != user_id:
        raise InvalidHandshakeException(
            "userId does not match the identity token",
            details={"claimed_user_id": claimed_user_id}
        )
    return user_id


async def authenticate_websocket(
    websocket: WebSocket,
    token: Optional[str],
    claimed_user_id: Optional[str] = None
) -> Optional[str]:
    """
    WebSocket 핸드셰이크 인증

    실패하면 연결을 1008(policy violation)로 닫고 None을 반환합니다.

    Returns:
        str: 인증된 사용자 ID, 인증 실패 시 None
    """
    try:
        user_id = verify_handshake(token, claimed_user_id)
    except InvalidHandshakeException as e:
        logger.warning(f"WebSocket handshake rejected: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    logger.info(f"WebSocket authentication successful for user: {user_id}")
    return user_id
