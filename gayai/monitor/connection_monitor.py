"""
컴패니언 백엔드 연결 모니터.

- /health, /api/health, / 순서로 GET (5초 타임아웃), 응답 코드 < 500이면 연결됨
- 주기 체크는 취소 가능한 asyncio 태스크, 이전 체크가 진행 중이면 해당 틱은 건너뜀
- 실패는 예외가 아니라 상태값(isConnected=False)으로만 표현
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import httpx

from gayai.config import ServerConfigStore

logger = logging.getLogger(__name__)

PROBE_PATHS = ("/health", "/api/health", "/")
PROBE_TIMEOUT_SEC = 5.0
DEFAULT_INTERVAL_SEC = 30.0
GAYA_SETTINGS_PATH = "/api/prompts/gaya-settings"

StatusListener = Callable[["ConnectionStatus"], Any]


@dataclass(frozen=True)
class ConnectionStatus:
    is_connected: bool = False
    server_url: Optional[str] = None
    overlay_url: str = ""
    last_checked_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isConnected": self.is_connected,
            "serverUrl": self.server_url,
            "overlayUrl": self.overlay_url,
            "lastChecked": self.last_checked_at,
        }


@dataclass(frozen=True)
class GayaSettings:
    """대시보드에서 설정한 가야 캐릭터/프롬프트"""
    character: str = ""
    system_prompt: str = ""
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def validate_server_url(url: str) -> Optional[str]:
    """유효하면 None, 아니면 에러 메시지."""
    try:
        parsed = urlparse((url or "").strip())
    except ValueError:
        return "Invalid URL format"
    if parsed.scheme not in ("http", "https"):
        return "URL must start with http:// or https://"
    if not parsed.netloc:
        return "Invalid URL format"
    return None


class ConnectionMonitor:
    """컴패니언 서버 도달 가능 여부 추적. 상태는 이 클래스만 변경."""

    def __init__(
        self,
        store: ServerConfigStore,
        overlay_url: str,
        timeout: float = PROBE_TIMEOUT_SEC,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._store = store
        self._timeout = timeout
        self._transport = transport
        self._status = ConnectionStatus(server_url=store.load(), overlay_url=overlay_url)
        self._listeners: List[StatusListener] = []
        self._task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None

    def get_status(self) -> ConnectionStatus:
        """현재 상태 (불변 복사본)"""
        return replace(self._status)

    @property
    def server_url(self) -> Optional[str]:
        return self._status.server_url

    def add_listener(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def _notify(self) -> None:
        status = self.get_status()
        for listener in list(self._listeners):
            try:
                res = listener(status)
                if asyncio.iscoroutine(res):
                    await res
            except Exception as e:
                logger.warning(f"상태 리스너 오류: {e}")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _probe(self, base_url: str) -> bool:
        base = base_url.rstrip("/")
        async with self._client() as client:
            for path in PROBE_PATHS:
                try:
                    response = await client.get(base + path)
                except httpx.HTTPError as e:
                    logger.debug(f"probe 실패 {base}{path}: {e}")
                    continue
                if response.status_code < 500:
                    logger.debug(f"probe 성공 {base}{path} ({response.status_code})")
                    return True
                logger.debug(f"probe 서버 오류 {base}{path} ({response.status_code})")
        return False

    async def check_connection(self) -> bool:
        """서버 도달 가능 여부 확인 후 상태 갱신/통지."""
        url = self._status.server_url
        was_connected = self._status.is_connected
        if not url:
            connected = False
        else:
            try:
                connected = await self._probe(url)
            except Exception as e:
                logger.warning(f"연결 체크 오류 ({url}): {e}")
                connected = False

        if self._status.server_url != url:
            # 체크 도중 URL이 바뀜. 이전 URL 결과는 버림
            logger.debug(f"이전 URL 체크 결과 무시: {url}")
            return self._status.is_connected

        self._status = replace(
            self._status, is_connected=connected, last_checked_at=time.time() * 1000
        )
        if connected != was_connected:
            logger.info(f"서버 연결 상태 변경: {was_connected} -> {connected} ({url})")
        await self._notify()
        return connected

    async def set_server_url(self, url: str) -> Dict[str, Any]:
        """URL 검증 → 저장 → 즉시 재확인. 반환: {success, error?}"""
        error = validate_server_url(url)
        if error:
            logger.warning(f"서버 URL 거부: {url!r} ({error})")
            return {"success": False, "error": error}
        url = url.strip().rstrip("/")
        self._status = replace(self._status, server_url=url, is_connected=False)
        self._store.save(url)
        logger.info(f"서버 URL 설정: {url}")
        await self.check_connection()
        return {"success": True}

    async def fetch_gaya_settings(self) -> Optional[GayaSettings]:
        """원격 가야 설정. 미설정/실패 시 None."""
        url = self._status.server_url
        if not url:
            return None
        try:
            async with self._client() as client:
                response = await client.get(url.rstrip("/") + GAYA_SETTINGS_PATH)
                response.raise_for_status()
                data = response.json()
        except Exception as e:
            logger.warning(f"가야 설정 조회 실패 ({url}): {e}")
            return None
        if not isinstance(data, dict):
            return None
        enabled = data.get("enabled")
        return GayaSettings(
            character=str(data.get("character") or ""),
            system_prompt=str(data.get("system_prompt") or ""),
            enabled=True if enabled is None else bool(enabled),
        )

    def _tick(self) -> None:
        if self._tick_task is not None and not self._tick_task.done():
            logger.debug("이전 연결 체크 진행 중, 이번 틱 건너뜀")
            return
        # 체크는 틱 주기와 무관하게 진행, 동시에 하나만
        self._tick_task = asyncio.ensure_future(self.check_connection())

    async def _run(self, interval: float) -> None:
        while True:
            self._tick()
            await asyncio.sleep(interval)

    def start(self, interval: float = DEFAULT_INTERVAL_SEC) -> None:
        """주기 체크 시작 (첫 체크는 즉시). 이미 실행 중이면 무시."""
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(interval))
        logger.info(f"연결 모니터 시작 (interval={interval:.1f}s)")

    async def stop(self) -> None:
        tasks = [t for t in (self._task, self._tick_task) if t is not None]
        self._task = self._tick_task = None
        if not tasks:
            return
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("연결 모니터 중지")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
