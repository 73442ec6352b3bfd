"""
Direct chat service - FastAPI Application

1:1 메시지 전송/조회, presence, 실시간 WebSocket 전달을 담당합니다.
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from directchat import api
from directchat.api import include_routers
from directchat.core.config import settings
from directchat.core.logging import get_logger, setup_logging
from directchat.database import init_databases, close_databases
from directchat.middleware.error_handler import (
    ErrorHandlerMiddleware,
    create_http_exception_handler,
    create_validation_exception_handler,
)
from directchat.middleware.logging_middleware import LoggingMiddleware
from directchat.websockets.hub import RealtimeHub

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    # Startup
    setup_logging()
    logger.info(f"{settings.app_name} starting up...")
    await init_databases()

    yield

    # Shutdown
    logger.info(f"{settings.app_name} shutting down...")
    await app.state.realtime_hub.shutdown()
    await close_databases()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    lifespan=lifespan
)

# 연결/presence 상태는 앱 단위로 하나
app.state.realtime_hub = RealtimeHub()

# Middleware (나중에 추가한 것이 바깥쪽)
app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception handlers
app.add_exception_handler(StarletteHTTPException, create_http_exception_handler())
app.add_exception_handler(RequestValidationError, create_validation_exception_handler())

# Include routers
include_routers(app, "api", api.__path__)

# 업로드된 이미지
Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount(settings.media_base_url, StaticFiles(directory=settings.upload_dir), name="uploads")

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": settings.version,
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "directchat.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
