from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from directchat.core.config import settings
from directchat.core.errors import create_error_response
from directchat.database import check_database_health
from directchat.websockets.hub import RealtimeHub, get_realtime_hub

router = APIRouter(tags=["Health"])


def _store_states(db_health: dict) -> dict:
    return {
        store: "connected" if db_health[store] else "disconnected"
        for store in ("mysql", "mongodb")
    }


@router.get("/health")
async def health_check(hub: RealtimeHub = Depends(get_realtime_hub)):
    """저장소 연결 상태 + 실시간 연결 현황"""
    db_health = await check_database_health()
    return {
        "status": "healthy" if db_health["overall"] else "degraded",
        "service": settings.app_name,
        "version": settings.version,
        "timestamp": datetime.now(timezone.utc),
        "stores": _store_states(db_health),
        "realtime": {
            "online_users": len(hub.registry.all_online_user_ids()),
            "connections": len(hub.registry.all_connection_ids()),
        },
    }


@router.get("/health/ready")
async def readiness_check():
    """두 저장소 모두 응답해야 트래픽을 받음 (아니면 retryable 503)"""
    db_health = await check_database_health()
    if db_health["overall"]:
        return {"status": "ready"}

    body = create_error_response(
        error="service_not_ready",
        message="Stores are not reachable yet",
        status_code=503,
        details=_store_states(db_health),
        retryable=True
    )
    return JSONResponse(status_code=503, content=body.model_dump())


@router.get("/health/live")
async def liveness_check():
    """프로세스 생존 확인 (저장소를 보지 않음)"""
    return {"status": "alive", "timestamp": datetime.now(timezone.utc)}
