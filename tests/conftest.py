"""
pytest 공통 fixture

    - fake_backend: 네트워크 없이 동작하는 GenerationBackend (AsyncMock 기반)
    - provider: 기본 캐릭터 1개 + fake_backend
    - hub: overlay_url 고정 BroadcastHub
    - consumer: AsyncMock 오버레이 컨슈머 (payload 기록)
    - settings: tmp_path 기반 Settings (API 키 없음)
"""

from unittest.mock import AsyncMock

import pytest

from gayai.ai.backends import GenerationBackend
from gayai.ai.models import Personality
from gayai.ai.provider import GenerationProvider
from gayai.config import Settings
from gayai.overlay.hub import BroadcastHub

AUDIO_OK = b"\x1a\x45\xdf\xa3" + b"\x00" * 2048


class FakeBackend(GenerationBackend):
    provider = "fake"
    default_model = "fake-model"

    def __init__(self, reply: str = "草", transcript: str = "こんにちは"):
        super().__init__("test-key")
        self.generate_mock = AsyncMock(return_value=reply)
        self.transcribe_mock = AsyncMock(return_value=transcript)

    async def generate(self, system_prompt: str, text: str) -> str:
        return await self.generate_mock(system_prompt, text)

    async def transcribe(self, audio: bytes) -> str:
        return await self.transcribe_mock(audio)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def personality():
    return Personality(name="GAYAIちゃん", system_prompt="短くツッコんで")


@pytest.fixture
def provider(fake_backend, personality):
    return GenerationProvider(personalities=[personality], backend=fake_backend)


@pytest.fixture
def hub():
    return BroadcastHub("http://localhost:3001/")


@pytest.fixture
def consumer(hub):
    send = AsyncMock()
    hub.connect("overlay-1", send)
    return send


@pytest.fixture
def settings(tmp_path):
    return Settings(
        ai_provider="gemini",
        overlay_port=3999,
        reply_cooldown_ms=5000,
        reply_chance=1.0,
        config_dir=tmp_path / "config",
    )
