"""
directchat 설정

환경 변수(.env)를 통한 설정 관리
"""

from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    """directchat 설정"""

    # Application
    app_name: str = "directchat"
    version: str = "1.0.0"
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Database - MongoDB (메시지)
    mongo_url: str
    mongo_db_name: str = "chat_db"

    # Database - MySQL (사용자)
    mysql_url: str

    # JWT
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_hours: int = 24 * 7  # 7일

    # CORS
    cors_origins: List[str] = ["http://localhost:5173"]

    # Store
    store_query_timeout_seconds: float = 5.0
    catch_up_limit: int = 100

    # Presence / 실시간 전송
    recently_online_window_seconds: int = 300  # 5분
    outbox_max_size: int = 256

    # File Upload
    upload_dir: str = "uploads"
    media_base_url: str = "/uploads"
    max_upload_size: int = 5 * 1024 * 1024  # 5MB

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
