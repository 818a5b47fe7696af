"""
채팅 클라이언트 추상 기본 클래스
모든 플랫폼(치지직, 유튜브 등)의 채팅 클라이언트가 구현해야 하는 인터페이스

클라이언트는 플랫폼 이벤트를 Normalizer 입력 형태(raw dict)로 바꿔 on_event로 넘긴다:
    {"id", "author": {"name", "thumbnail": {"url"}}, "message": [{"text"}|{"emojiText"}...], "timestamp"}
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

RawEvent = Dict[str, Any]
EventCallback = Callable[[RawEvent], Any]


def build_raw_event(
    author_name: str,
    parts: List[Dict[str, Any]],
    timestamp: Optional[Any] = None,
    message_id: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> RawEvent:
    """플랫폼 공통 raw 이벤트 생성 헬퍼"""
    author: Dict[str, Any] = {"name": author_name}
    if avatar_url:
        author["thumbnail"] = {"url": avatar_url}
    raw: RawEvent = {"author": author, "message": parts}
    if message_id:
        raw["id"] = message_id
    if timestamp is not None:
        raw["timestamp"] = timestamp
    return raw


class ChatClient(ABC):
    """채팅 클라이언트 추상 기본 클래스"""

    def __init__(
        self,
        source_id: str,
        on_event: Optional[EventCallback] = None,
        reconnect_delay: float = 5.0,
        max_reconnect_attempts: int = 10
    ):
        """
        Args:
            source_id: 채널 ID / 라이브 영상 ID (플랫폼별 형식 다를 수 있음)
            on_event: raw 이벤트 수신 시 호출할 콜백 (코루틴이면 await)
            reconnect_delay: 재연결 지연 시간 (초)
            max_reconnect_attempts: 최대 재연결 시도 횟수
        """
        self.source_id = source_id
        self.on_event = on_event
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts

        # 연결 상태
        self.is_connected = False
        self.reconnect_attempts = 0
        self._running = False

    @property
    @abstractmethod
    def platform_name(self) -> str:
        """플랫폼 이름 반환 (예: 'chzzk', 'youtube')"""
        pass

    @abstractmethod
    async def connect(self):
        """플랫폼별 연결 로직 구현"""
        pass

    @abstractmethod
    async def disconnect(self):
        """플랫폼별 연결 종료 로직 구현"""
        pass

    @abstractmethod
    async def listen(self):
        """메시지 수신 루프 구현"""
        pass

    async def _reconnect(self) -> bool:
        """재연결 시도 (지수 백오프) - 공통 로직"""
        if self.reconnect_attempts >= self.max_reconnect_attempts:
            logger.error(f"[{self.platform_name}] 최대 재연결 시도 횟수 ({self.max_reconnect_attempts}) 초과")
            return False

        delay = self.reconnect_delay * (2 ** self.reconnect_attempts)
        self.reconnect_attempts += 1

        logger.info(
            f"[{self.platform_name}] 재연결 시도 "
            f"{self.reconnect_attempts}/{self.max_reconnect_attempts} ({delay}초 후)"
        )
        await asyncio.sleep(delay)

        try:
            await self.connect()
            return True
        except Exception as e:
            logger.error(f"[{self.platform_name}] 재연결 실패: {e}")
            return False

    async def start(self):
        """클라이언트 시작"""
        await self.connect()
        await self.listen()

    async def stop(self):
        """클라이언트 중지"""
        self._running = False
        await self.disconnect()

    async def _emit(self, raw: RawEvent) -> None:
        """on_event 호출. 콜백 에러는 로그만 남기고 수신 루프는 유지."""
        if not self.on_event:
            return
        try:
            cb = self.on_event(raw)
            if asyncio.iscoroutine(cb):
                await cb
        except Exception as e:
            logger.error(f"[{self.platform_name}] 이벤트 처리 오류: {e}", exc_info=True)
