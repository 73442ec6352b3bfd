from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from directchat.core.logging import clear_request_context, get_logger, set_connection_context
from directchat.websockets.auth import authenticate_websocket, extract_token
from directchat.websockets.handlers import WebSocketMessageHandler
from directchat.websockets.hub import get_realtime_hub

logger = get_logger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None, alias="userId"),
):
    """
    실시간 연결 엔드포인트

    Args:
        websocket: WebSocket 연결 객체
        token: JWT 액세스 토큰 (또는 Authorization: Bearer 헤더)
        user_id: 클라이언트가 주장하는 사용자 ID (토큰과 일치해야 함)
    """
    hub = get_realtime_hub(websocket)

    # 1. 핸드셰이크 인증
    authenticated_user_id = await authenticate_websocket(
        websocket, extract_token(websocket, token), user_id
    )
    if not authenticated_user_id:
        return

    await websocket.accept()

    # 2. 연결 등록 (presence 전이 + 온라인 목록 전송)
    connection_id = await hub.open_connection(authenticated_user_id, websocket.send_json)
    set_connection_context(connection_id, authenticated_user_id)
    handler = WebSocketMessageHandler(hub)

    try:
        # 3. 프레임 수신 루프
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError as e:
                logger.warning(f"Invalid JSON from user {authenticated_user_id}: {e}")
                handler.send_error(connection_id, "invalid_json", "Frame is not valid JSON")
                continue

            await handler.handle_message(connection_id, authenticated_user_id, frame)

    except WebSocketDisconnect as e:
        logger.info(f"WebSocket disconnected for user {authenticated_user_id} (code={e.code})")

    finally:
        # 어떤 경로로 끝나든 연결 해제
        await hub.close_connection(connection_id)
        clear_request_context()
