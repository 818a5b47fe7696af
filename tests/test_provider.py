"""
Generation Provider 테스트

    - 짧은 음성은 백엔드 호출 없이 ''
    - 미설정 / 레이트 리밋 / 인증 오류 → 고정 문구
    - 분류되지 않은 오류는 호출자에게 전달
    - 멀티 캐릭터: 실패/빈 답변 제외, 동시 호출, 완료 순서
"""

import asyncio

import pytest

from gayai.ai.models import Personality
from gayai.ai.provider import (
    MIN_AUDIO_BYTES,
    NOT_CONFIGURED_REPLY,
    RATE_LIMITED_REPLY,
    UNAUTHORIZED_REPLY,
    GenerationProvider,
)
from tests.conftest import AUDIO_OK, FakeBackend


class RateLimitError(Exception):
    status_code = 429


class TestTranscribe:
    @pytest.mark.asyncio
    async def test_short_audio_skips_backend(self, provider, fake_backend):
        assert await provider.transcribe(b"x" * (MIN_AUDIO_BYTES - 1)) == ""
        fake_backend.transcribe_mock.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_audio(self, provider, fake_backend):
        assert await provider.transcribe(b"") == ""
        fake_backend.transcribe_mock.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transcribes(self, provider, fake_backend):
        fake_backend.transcribe_mock.return_value = "  こんにちは \n"
        assert await provider.transcribe(AUDIO_OK) == "こんにちは"
        fake_backend.transcribe_mock.assert_awaited_once_with(AUDIO_OK)

    @pytest.mark.asyncio
    async def test_backend_error_returns_empty(self, provider, fake_backend):
        fake_backend.transcribe_mock.side_effect = RuntimeError("network down")
        assert await provider.transcribe(AUDIO_OK) == ""

    @pytest.mark.asyncio
    async def test_not_configured_returns_empty(self):
        assert await GenerationProvider().transcribe(AUDIO_OK) == ""


class TestGenerateReply:
    @pytest.mark.asyncio
    async def test_not_configured_sentinel(self):
        provider = GenerationProvider()
        assert await provider.generate_reply("prompt", "hi") == NOT_CONFIGURED_REPLY

    @pytest.mark.asyncio
    async def test_strips_outer_brackets(self, provider, fake_backend):
        fake_backend.generate_mock.return_value = "「天才か？」"
        assert await provider.generate_reply("prompt", "見て見て") == "天才か？"
        fake_backend.generate_mock.assert_awaited_once_with("prompt", "見て見て")

    @pytest.mark.asyncio
    async def test_rate_limit_sentinel(self, provider, fake_backend):
        fake_backend.generate_mock.side_effect = RateLimitError("Too Many Requests")
        assert await provider.generate_reply("prompt", "hi") == RATE_LIMITED_REPLY

    @pytest.mark.asyncio
    async def test_quota_message_sentinel(self, provider, fake_backend):
        fake_backend.generate_mock.side_effect = Exception("Quota exceeded for metric")
        assert await provider.generate_reply("prompt", "hi") == RATE_LIMITED_REPLY

    @pytest.mark.asyncio
    async def test_unauthorized_sentinel(self, provider, fake_backend):
        fake_backend.generate_mock.side_effect = Exception("API key not valid")
        assert await provider.generate_reply("prompt", "hi") == UNAUTHORIZED_REPLY

    @pytest.mark.asyncio
    async def test_unknown_error_propagates(self, provider, fake_backend):
        fake_backend.generate_mock.side_effect = RuntimeError("unexpected shape")
        with pytest.raises(RuntimeError):
            await provider.generate_reply("prompt", "hi")

    @pytest.mark.asyncio
    async def test_whitespace_output_is_empty(self, provider, fake_backend):
        fake_backend.generate_mock.return_value = "   \n "
        assert await provider.generate_reply("prompt", "hi") == ""

    @pytest.mark.asyncio
    async def test_empty_input_skips_backend(self, provider, fake_backend):
        assert await provider.generate_reply("prompt", "   ") == ""
        fake_backend.generate_mock.assert_not_awaited()


class TestFanOut:
    @pytest.mark.asyncio
    async def test_failures_and_empty_replies_omitted(self):
        backend = FakeBackend()
        ok = Personality("A", "prompt-a")
        broken = Personality("B", "prompt-b")
        silent = Personality("C", "prompt-c")

        async def generate(system_prompt, text):
            if system_prompt == "prompt-b":
                raise RuntimeError("boom")
            if system_prompt == "prompt-c":
                return "  "
            return "「ナイス」"

        backend.generate_mock.side_effect = generate
        provider = GenerationProvider(personalities=[ok, broken, silent], backend=backend)

        results = await provider.generate_reply_for_all_personalities("いくぞ")
        assert [(r.personality.name, r.text) for r in results] == [("A", "ナイス")]
        assert backend.generate_mock.await_count == 3

    @pytest.mark.asyncio
    async def test_calls_run_concurrently_and_return_in_completion_order(self):
        backend = FakeBackend()
        b_done = asyncio.Event()
        started = []

        async def generate(system_prompt, text):
            started.append(system_prompt)
            if system_prompt == "prompt-a":
                # B가 끝나야 A가 끝남. 순차 호출이면 여기서 멈춤
                await b_done.wait()
                return "A先輩"
            b_done.set()
            return "B後輩"

        backend.generate_mock.side_effect = generate
        provider = GenerationProvider(
            personalities=[Personality("A", "prompt-a"), Personality("B", "prompt-b")],
            backend=backend,
        )

        results = await asyncio.wait_for(provider.generate_reply_for_all_personalities("いくぞ"), timeout=1.0)
        assert sorted(started) == ["prompt-a", "prompt-b"]
        assert [(r.personality.name, r.text) for r in results] == [("B", "B後輩"), ("A", "A先輩")]

    @pytest.mark.asyncio
    async def test_rate_limit_sentinel_kept(self):
        backend = FakeBackend()
        backend.generate_mock.side_effect = RateLimitError("429")
        provider = GenerationProvider(personalities=[Personality("A", "p")], backend=backend)
        results = await provider.generate_reply_for_all_personalities("hi")
        assert [r.text for r in results] == [RATE_LIMITED_REPLY]

    @pytest.mark.asyncio
    async def test_no_personalities(self, fake_backend):
        provider = GenerationProvider(backend=fake_backend)
        assert await provider.generate_reply_for_all_personalities("hi") == []


class TestConfigure:
    def test_unknown_provider_keeps_backend(self, provider):
        assert provider.configure("nope", "key") is False
        assert provider.provider == "fake"

    def test_empty_key_rejected(self):
        provider = GenerationProvider()
        assert provider.configure("openai", "  ") is False
        assert provider.is_configured is False

    def test_openai_configured(self):
        provider = GenerationProvider()
        assert provider.configure("openai", "sk-test") is True
        assert provider.provider == "openai"
        assert provider.is_configured is True
