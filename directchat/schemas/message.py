from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase 와이어 포맷 공통 설정"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


class MessageCreate(CamelModel):
    """메시지 전송 스키마 (text, image 중 최소 하나)"""
    text: Optional[str] = Field(None, description="메시지 텍스트")
    image: Optional[str] = Field(None, description="base64 이미지 (data URL 허용)")


class MessageRecord(CamelModel):
    """저장된 메시지 (Store가 id, created_at을 부여)"""
    id: str = Field(..., description="메시지 ID")
    sender_id: str = Field(..., description="발신자 ID")
    receiver_id: str = Field(..., description="수신자 ID")
    text: Optional[str] = Field(None, description="메시지 텍스트")
    image: Optional[str] = Field(None, description="이미지 URL")
    created_at: datetime = Field(..., description="생성일시")
    updated_at: Optional[datetime] = Field(None, description="수정일시")

    def to_wire(self) -> dict:
        """실시간 채널/응답용 camelCase dict"""
        return self.model_dump(mode="json", by_alias=True)


class MessageDeleteResponse(CamelModel):
    """메시지 삭제 응답"""
    message: str = "Message deleted successfully"
    message_id: str


class MessagesClearResponse(CamelModel):
    """대화 정리 응답"""
    message: str
    deleted_count: int

