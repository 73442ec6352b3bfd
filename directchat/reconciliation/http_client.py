"""
HTTP catch-up client (httpx)
"""

from datetime import datetime
from typing import List, Optional

import httpx

from directchat.core.logging import get_logger
from directchat.schemas.message import MessageRecord

logger = get_logger(__name__)


class CatchUpFailed(Exception):
    """catch-up 요청 실패. retryable이면 다음 주기에 다시 시도할 수 있습니다."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class CatchUpClient:
    """GET /api/messages/{other_user_id}/new?since= 호출"""

    def __init__(
        self,
        base_url: str,
        token: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = {"Authorization": f"Bearer {token}"}

    async def fetch(self, other_user_id: str, since: Optional[datetime] = None) -> List[MessageRecord]:
        """
        since 이후의 메시지 조회

        Raises:
            CatchUpFailed: 네트워크 오류 또는 오류 응답
        """
        params = {"since": since.isoformat()} if since else None
        try:
            response = await self._client.get(
                f"/api/messages/{other_user_id}/new",
                params=params,
                headers=self._headers
            )
        except httpx.HTTPError as e:
            logger.warning(f"Catch-up request failed: {e}")
            raise CatchUpFailed(str(e) or type(e).__name__)

        if response.status_code != 200:
            retryable = response.status_code >= 500
            try:
                body = response.json()
                retryable = body.get("retryable", retryable)
                message = body.get("message", response.text)
            except ValueError:
                message = response.text
            raise CatchUpFailed(message, status_code=response.status_code, retryable=retryable)

        return [MessageRecord.model_validate(item) for item in response.json()]

    def fetcher(self, other_user_id: str):
        """CatchUpPoller에 넘길 since -> messages 함수"""
        async def fetch(since: Optional[datetime]) -> List[MessageRecord]:
            return await self.fetch(other_user_id, since)
        return fetch

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
