"""
애플리케이션 컨텍스트: 컴포넌트 생성/연결과 태스크 수명 관리.

build_context(settings) 로 한 번 만들고 start() / shutdown() 으로 모든 태스크를 소유.
uvicorn은 같은 이벤트 루프에서 FastAPI + Socket.IO ASGI 앱을 서빙.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import uvicorn

from gayai.ai.provider import GenerationProvider
from gayai.ai.reply_policy import ReplyGate
from gayai.chat.manager import ChatSourceManager
from gayai.chat.normalizer import CommentNormalizer
from gayai.config import ServerConfigStore, Settings, load_character_prompt, load_personalities
from gayai.monitor.connection_monitor import ConnectionMonitor
from gayai.overlay.hub import BroadcastHub
from gayai.overlay.server import create_asgi_app
from gayai.overlay.state import RecentComments
from gayai.pipeline import CoHostPipeline

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    hub: BroadcastHub
    recent: RecentComments
    provider: GenerationProvider
    gate: ReplyGate
    monitor: ConnectionMonitor
    pipeline: CoHostPipeline
    chat: ChatSourceManager
    _server: Optional[uvicorn.Server] = field(default=None, repr=False)
    _server_task: Optional[asyncio.Task] = field(default=None, repr=False)

    async def start(self, serve: bool = True) -> None:
        """모니터 시작 + (serve=True면) 오버레이/컨트롤 서버 시작."""
        self.monitor.start(self.settings.monitor_interval_sec)
        if not serve:
            return
        config = uvicorn.Config(
            create_asgi_app(self),
            host=self.settings.overlay_host,
            port=self.settings.overlay_port,
            log_level="warning",
            log_config=None,
        )
        self._server = uvicorn.Server(config)
        self._server_task = asyncio.create_task(self._server.serve())
        logger.info(
            f"오버레이 서버 시작: {self.hub.overlay_url} "
            f"(bind {self.settings.overlay_host}:{self.settings.overlay_port})"
        )

    async def wait(self) -> None:
        """서버가 종료될 때까지 대기."""
        if self._server_task is not None:
            await self._server_task

    async def shutdown(self) -> None:
        """채팅 소스 → 파이프라인 태스크 → 모니터 → 서버 순으로 정리."""
        logger.info("종료 시작")
        await self.chat.stop()
        await self.pipeline.shutdown()
        await self.monitor.stop()
        if self._server is not None:
            self._server.should_exit = True
        if self._server_task is not None:
            try:
                await asyncio.wait_for(self._server_task, timeout=5.0)
            except asyncio.TimeoutError:
                self._server_task.cancel()
                logger.warning("오버레이 서버 종료 타임아웃, 태스크 취소")
            except asyncio.CancelledError:
                pass
        self._server = None
        self._server_task = None
        logger.info("종료 완료")


def build_context(settings: Settings) -> AppContext:
    """설정으로 컴포넌트를 한 번 생성해 연결."""
    default_prompt = load_character_prompt(settings.config_dir / "character.txt")
    personalities = load_personalities(settings.config_dir / "personalities.json", default_prompt)
    names = ", ".join(p.name for p in personalities)
    logger.info(f"캐릭터 {len(personalities)}개 로드: {names}")

    provider = GenerationProvider(personalities=personalities)
    api_key = settings.api_key_for(settings.ai_provider)
    if api_key:
        provider.configure(
            settings.ai_provider,
            api_key,
            deepgram_key=settings.deepgram_api_key or None,
            model=settings.ai_model or None,
        )
    else:
        logger.warning(f"{settings.ai_provider} API 키가 없어 AI가 설정되지 않았습니다.")

    hub = BroadcastHub(settings.overlay_url)
    recent = RecentComments()
    hub.subscribe(recent)

    gate = ReplyGate(settings.reply_cooldown_ms, settings.reply_chance)
    monitor = ConnectionMonitor(ServerConfigStore(settings.server_config_path), settings.overlay_url)
    pipeline = CoHostPipeline(
        hub=hub,
        provider=provider,
        gate=gate,
        normalizer=CommentNormalizer(),
        monitor=monitor,
        reply_to_chat=settings.reply_to_chat,
        multi_personality=settings.multi_personality,
    )
    chat = ChatSourceManager(
        on_event=pipeline.handle_chat_event,
        platform_options={
            "chzzk": {"access_token": settings.chzzk_access_token or None},
            "youtube": {"api_key": settings.youtube_api_key},
        },
    )
    return AppContext(
        settings=settings,
        hub=hub,
        recent=recent,
        provider=provider,
        gate=gate,
        monitor=monitor,
        pipeline=pipeline,
        chat=chat,
    )
