"""
채팅 소스 관리: 한 번에 하나의 플랫폼 클라이언트를 태스크로 실행.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from .base_client import ChatClient, EventCallback
from .client_factory import ChatClientFactory

logger = logging.getLogger(__name__)


class ChatSourceManager:
    """
    start(platform, source_id) → 연결 확인 후 수신 루프를 태스크로 실행.
    결과는 {success, error?} 형태로만 반환하고 예외를 올리지 않는다.
    """

    def __init__(
        self,
        on_event: EventCallback,
        platform_options: Optional[Dict[str, Dict[str, Any]]] = None,
        factory: type[ChatClientFactory] = ChatClientFactory,
    ):
        """
        Args:
            on_event: raw 이벤트 콜백 (파이프라인)
            platform_options: 플랫폼별 생성 인자 (예: {"chzzk": {"access_token": ...}})
        """
        self._on_event = on_event
        self._options = platform_options or {}
        self._factory = factory
        self._client: Optional[ChatClient] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def client(self) -> Optional[ChatClient]:
        return self._client

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, platform: str, source_id: str) -> Dict[str, Any]:
        if not (source_id or "").strip():
            return {"success": False, "error": "source_id가 비어 있습니다"}
        try:
            client = self._factory.create(
                platform,
                source_id.strip(),
                on_event=self._on_event,
                **self._options.get((platform or "").strip().lower(), {}),
            )
        except (ValueError, TypeError) as e:
            logger.warning(f"채팅 소스 생성 실패 ({platform}): {e}")
            return {"success": False, "error": str(e)}

        await self.stop()
        try:
            await client.connect()
        except Exception as e:
            logger.error(f"채팅 소스 연결 실패 ({platform}/{source_id}): {e}")
            try:
                await client.disconnect()
            except Exception as close_err:
                logger.debug(f"연결 실패 후 정리 오류: {close_err}")
            return {"success": False, "error": str(e)}

        self._client = client
        self._task = asyncio.create_task(client.listen())
        self._task.add_done_callback(self._on_task_done)
        logger.info(f"채팅 소스 시작: {client.platform_name} / {client.source_id}")
        return {"success": True}

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"채팅 수신 루프 종료 (오류): {exc}")
        else:
            logger.info("채팅 수신 루프 종료")

    async def stop(self) -> Dict[str, Any]:
        client, task = self._client, self._task
        self._client, self._task = None, None
        if client is None:
            return {"success": True}
        try:
            await client.stop()
        except Exception as e:
            logger.warning(f"채팅 소스 종료 오류: {e}")
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"수신 태스크 종료 오류: {e}")
        logger.info(f"채팅 소스 중지: {client.platform_name}")
        return {"success": True}
