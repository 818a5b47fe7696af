"""
YouTube 라이브 채팅 클라이언트 (YouTube Data API v3 폴링)

1. videos?part=liveStreamingDetails 로 activeLiveChatId 조회
2. liveChat/messages 를 pollingIntervalMillis 간격으로 폴링
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import httpx

from .base_client import ChatClient, EventCallback, build_raw_event

logger = logging.getLogger(__name__)

YOUTUBE_API_BASE_URL = "https://www.googleapis.com/youtube/v3"
DEFAULT_POLL_INTERVAL_SEC = 5.0
MIN_POLL_INTERVAL_SEC = 1.0

_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")


def extract_video_id(source: str) -> str:
    """
    영상 ID 또는 URL(watch?v=, youtu.be/, /live/) → 영상 ID

    Raises:
        ValueError: ID를 찾을 수 없는 경우
    """
    value = (source or "").strip()
    if _VIDEO_ID_RE.match(value):
        return value
    parsed = urlparse(value)
    if parsed.netloc:
        vid = (parse_qs(parsed.query).get("v") or [""])[0]
        if not vid:
            segments = [s for s in parsed.path.split("/") if s]
            vid = segments[-1] if segments else ""
        if _VIDEO_ID_RE.match(vid):
            return vid
    raise ValueError(f"YouTube 영상 ID를 찾을 수 없습니다: {source}")


class YouTubeLiveChatClient(ChatClient):
    """YouTube Data API 폴링 클라이언트. 접속 전 메시지(백로그)는 건너뜀."""

    @property
    def platform_name(self) -> str:
        return "youtube"

    def __init__(
        self,
        source_id: str,
        api_key: Optional[str] = None,
        on_event: Optional[EventCallback] = None,
        reconnect_delay: float = 5.0,
        max_reconnect_attempts: int = 10,
        skip_backlog: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            source_id: 라이브 영상 ID 또는 URL
            api_key: YouTube Data API 키 (YOUTUBE_API_KEY)
            skip_backlog: True면 첫 폴링 결과(접속 전 메시지)는 넘기지 않음
        """
        super().__init__(source_id, on_event, reconnect_delay, max_reconnect_attempts)
        self.api_key = (api_key or "").strip()
        self.video_id = extract_video_id(source_id)
        self.skip_backlog = skip_backlog
        self._transport = transport

        self.live_chat_id: Optional[str] = None
        self.page_token: Optional[str] = None
        self.poll_interval = DEFAULT_POLL_INTERVAL_SEC
        self._client: Optional[httpx.AsyncClient] = None
        self._primed = False

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if self._client is None:
            raise RuntimeError("YouTube 클라이언트가 연결되지 않았습니다")
        response = await self._client.get(
            f"{YOUTUBE_API_BASE_URL}/{path}", params={**params, "key": self.api_key}
        )
        response.raise_for_status()
        return response.json()

    async def _resolve_live_chat_id(self) -> str:
        data = await self._get("videos", {"part": "liveStreamingDetails", "id": self.video_id})
        items = data.get("items") or []
        details = (items[0].get("liveStreamingDetails") if items else None) or {}
        chat_id = details.get("activeLiveChatId")
        if not chat_id:
            raise ValueError(f"진행 중인 라이브 채팅이 없습니다: {self.video_id}")
        return chat_id

    async def connect(self):
        if not self.api_key:
            raise ValueError("YouTube API 키가 필요합니다 (YOUTUBE_API_KEY)")
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0, transport=self._transport)
        try:
            self.live_chat_id = await self._resolve_live_chat_id()
        except Exception as e:
            logger.error(f"[{self.platform_name}] 연결 실패: {e}")
            self.is_connected = False
            raise
        self.is_connected = True
        self.reconnect_attempts = 0
        logger.info(f"[{self.platform_name}] 라이브 채팅 연결: video={self.video_id}")

    async def disconnect(self):
        self.is_connected = False
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info(f"[{self.platform_name}] 연결 종료")

    def item_to_raw(self, item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """liveChatMessage 리소스 → raw 이벤트. 텍스트 없는 이벤트는 None."""
        snippet = item.get("snippet") or {}
        author = item.get("authorDetails") or {}
        text = (snippet.get("textMessageDetails") or {}).get("messageText") or snippet.get("displayMessage")
        if not text:
            return None
        return build_raw_event(
            author_name=author.get("displayName") or "",
            parts=[{"text": text}],
            timestamp=snippet.get("publishedAt"),
            message_id=item.get("id"),
            avatar_url=author.get("profileImageUrl"),
        )

    async def poll_once(self) -> List[Dict[str, Any]]:
        """한 페이지 조회 후 raw 이벤트 목록 반환 (백로그 건너뛰기 반영)"""
        params: Dict[str, Any] = {"liveChatId": self.live_chat_id, "part": "snippet,authorDetails"}
        if self.page_token:
            params["pageToken"] = self.page_token
        data = await self._get("liveChat/messages", params)

        self.page_token = data.get("nextPageToken") or self.page_token
        interval_ms = data.get("pollingIntervalMillis")
        if isinstance(interval_ms, (int, float)):
            self.poll_interval = max(MIN_POLL_INTERVAL_SEC, interval_ms / 1000)

        first = not self._primed
        self._primed = True
        if first and self.skip_backlog:
            skipped = len(data.get("items") or [])
            logger.debug(f"[{self.platform_name}] 백로그 {skipped}건 건너뜀")
            return []
        events = []
        for item in data.get("items") or []:
            raw = self.item_to_raw(item)
            if raw is not None:
                events.append(raw)
        return events

    async def listen(self):
        self._running = True
        while self._running:
            try:
                if not self.is_connected:
                    if not await self._reconnect():
                        break
                    continue
                for raw in await self.poll_once():
                    await self._emit(raw)
                await asyncio.sleep(self.poll_interval)
            except asyncio.CancelledError:
                raise
            except httpx.HTTPStatusError as e:
                code = e.response.status_code
                if code in (403, 404):
                    # 방송 종료/채팅 비활성화
                    logger.warning(f"[{self.platform_name}] 라이브 채팅 종료 ({code})")
                    break
                logger.error(f"[{self.platform_name}] 폴링 오류 ({code}): {e}")
                self.is_connected = False
            except Exception as e:
                logger.error(f"[{self.platform_name}] 예상치 못한 오류: {e}")
                self.is_connected = False
                await asyncio.sleep(1)
