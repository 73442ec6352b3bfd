"""
Media upload service layer.

base64(또는 data URL) 이미지를 업로드 디렉토리에 저장하고 공개 URL을 반환합니다.
"""

import abc
import base64
import binascii
import re
import uuid
from pathlib import Path
from typing import Optional

import aiofiles

from directchat.core.config import settings
from directchat.core.errors import MediaUploadFailedException
from directchat.core.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# File Upload Configuration
# =============================================================================

# data URL 의 mime 타입 -> 확장자
ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)


class BlobStore(abc.ABC):
    """미디어 저장소 인터페이스"""

    @abc.abstractmethod
    async def upload(self, data: str, folder: str = "messages") -> str:
        """
        base64 데이터를 저장하고 URL을 반환합니다.

        Raises:
            MediaUploadFailedException: 디코딩/검증/저장 실패
        """


def decode_image_payload(data: str, max_size: int) -> tuple:
    """
    data URL 또는 순수 base64 문자열을 (bytes, 확장자)로 변환

    Raises:
        MediaUploadFailedException
    """
    mime: Optional[str] = None
    match = DATA_URL_PATTERN.match(data.strip())
    if match:
        mime = match.group("mime").lower()
        data = match.group("data")

    if mime is not None and mime not in ALLOWED_IMAGE_TYPES:
        allowed = ", ".join(sorted(ALLOWED_IMAGE_TYPES))
        raise MediaUploadFailedException(
            f"Invalid image type. Allowed types: {allowed}",
            details={"mime_type": mime}
        )

    try:
        content = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise MediaUploadFailedException("Image is not valid base64 data")

    if not content:
        raise MediaUploadFailedException("Image is empty")

    if len(content) > max_size:
        raise MediaUploadFailedException(
            "Image is too large",
            details={"max_size": max_size, "size": len(content)}
        )

    extension = ALLOWED_IMAGE_TYPES.get(mime, ".png") if mime else ".png"
    return content, extension


class LocalBlobStore(BlobStore):
    """로컬 디스크 업로드 디렉토리에 저장"""

    def __init__(
        self,
        upload_dir: Optional[str] = None,
        base_url: Optional[str] = None,
        max_size: Optional[int] = None
    ):
        self.upload_dir = Path(upload_dir or settings.upload_dir)
        self.base_url = (base_url or settings.media_base_url).rstrip("/")
        self.max_size = max_size or settings.max_upload_size

    async def upload(self, data: str, folder: str = "messages") -> str:
        content, extension = decode_image_payload(data, self.max_size)

        target_dir = self.upload_dir / folder
        filename = f"{uuid.uuid4()}{extension}"

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target_dir / filename, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error(f"Failed to store uploaded image: {e}")
            raise MediaUploadFailedException("Failed to store image")

        logger.info(f"Stored image {folder}/{filename}", extra={
            "event_type": "file_operation",
            "file_size": len(content)
        })
        return f"{self.base_url}/{folder}/{filename}"


def get_blob_store() -> BlobStore:
    """FastAPI 의존성: 기본 BlobStore"""
    return LocalBlobStore()
