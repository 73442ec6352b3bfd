from datetime import datetime, timezone
from typing import Optional
from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, DESCENDING, IndexModel


def _utcnow() -> datetime:
    """MongoDB 저장 정밀도(밀리초)로 자른 현재 시각"""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class Message(Document):
    sender_id: str = Field(..., description="User ID who sent the message")
    receiver_id: str = Field(..., description="User ID who receives the message")
    text: Optional[str] = Field(None, description="Message text")
    image: Optional[str] = Field(None, description="Image URL")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Settings:
        name = "messages"
        indexes = [
            IndexModel([("sender_id", ASCENDING), ("receiver_id", ASCENDING)]),  # 대화 조회
            IndexModel([("receiver_id", ASCENDING), ("sender_id", ASCENDING)]),
            IndexModel([("created_at", DESCENDING)]),  # 시간순 정렬
        ]

    def __repr__(self):
        return f"<Message(id={self.id}, sender_id={self.sender_id}, receiver_id={self.receiver_id})>"
