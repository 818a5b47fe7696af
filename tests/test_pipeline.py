"""
코호스트 파이프라인 테스트 (채팅 → 브로드캐스트, 음성 → 가야)
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from gayai.ai.models import Personality
from gayai.ai.provider import GenerationProvider
from gayai.ai.reply_policy import ReplyGate
from gayai.monitor.connection_monitor import ConnectionStatus, GayaSettings
from gayai.pipeline import CoHostPipeline
from tests.conftest import AUDIO_OK, FakeBackend


def _gate(cooldown_ms=5000, chance=1.0, rand=0.0):
    return ReplyGate(cooldown_ms, chance, rng=lambda: rand)


def _remote_monitor(settings):
    monitor = MagicMock()
    monitor.get_status.return_value = ConnectionStatus(is_connected=True, server_url="http://b")
    monitor.fetch_gaya_settings = AsyncMock(return_value=settings)
    return monitor


class TestChat:
    @pytest.mark.asyncio
    async def test_chat_broadcast_as_viewer_comment(self, hub, consumer, provider):
        pipeline = CoHostPipeline(hub, provider, _gate())
        sent = await pipeline.handle_chat_event({"author": {"name": "v"}, "message": [{"text": "初見です"}]})

        assert sent.is_reply is False
        payload = consumer.await_args.args[0]
        assert payload["text"] == "初見です"
        assert payload["isGaya"] is False

    @pytest.mark.asyncio
    async def test_empty_chat_dropped(self, hub, consumer, provider):
        pipeline = CoHostPipeline(hub, provider, _gate())
        assert await pipeline.handle_chat_event({"author": {"name": "v"}, "message": []}) is None
        consumer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_chat_reply_when_enabled(self, hub, consumer, provider, fake_backend):
        fake_backend.generate_mock.return_value = "「いらっしゃい」"
        pipeline = CoHostPipeline(hub, provider, _gate(), reply_to_chat=True)

        await pipeline.handle_chat_event({"author": {"name": "v"}, "message": "初見です"})
        await asyncio.gather(*list(pipeline._tasks))

        payloads = [call.args[0] for call in consumer.await_args_list]
        assert [p["isGaya"] for p in payloads] == [False, True]
        assert payloads[1]["text"] == "いらっしゃい"
        assert fake_backend.generate_mock.await_args.args[1] == "v: 初見です"

    @pytest.mark.asyncio
    async def test_chat_reply_respects_cooldown(self, hub, consumer, provider, fake_backend):
        pipeline = CoHostPipeline(hub, provider, _gate(), reply_to_chat=True)
        for text in ("1", "2", "3"):
            await pipeline.handle_chat_event({"author": {"name": "v"}, "message": text})
        await asyncio.gather(*list(pipeline._tasks))
        assert fake_backend.generate_mock.await_count == 1


class TestAudio:
    @pytest.mark.asyncio
    async def test_short_audio_returns_none(self, hub, consumer, provider, fake_backend):
        pipeline = CoHostPipeline(hub, provider, _gate())
        assert await pipeline.process_audio(b"tiny") is None
        fake_backend.transcribe_mock.assert_not_awaited()
        consumer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_transcript_returns_none(self, hub, provider, fake_backend):
        fake_backend.transcribe_mock.return_value = "   "
        pipeline = CoHostPipeline(hub, provider, _gate())
        assert await pipeline.process_audio(AUDIO_OK) is None

    @pytest.mark.asyncio
    async def test_reply_broadcast_transcript_not(self, hub, consumer, provider, fake_backend):
        fake_backend.transcribe_mock.return_value = "今日は雨だね"
        fake_backend.generate_mock.return_value = "「それな」"
        pipeline = CoHostPipeline(hub, provider, _gate())

        result = await pipeline.process_audio(AUDIO_OK)

        assert result["text"] == "今日は雨だね"
        assert result["gaya"] == "それな"
        consumer.assert_awaited_once()
        payload = consumer.await_args.args[0]
        assert payload["isGaya"] is True
        assert payload["text"] == "それな"
        assert payload["name"] == "GAYAIちゃん"

    @pytest.mark.asyncio
    async def test_gate_denied_returns_text_without_gaya(self, hub, consumer, provider):
        pipeline = CoHostPipeline(hub, provider, _gate())
        first = await pipeline.process_audio(AUDIO_OK)
        second = await pipeline.process_audio(AUDIO_OK)
        assert first["gaya"] == "草"
        assert second == {"text": "こんにちは", "gaya": None, "replies": []}
        assert consumer.await_count == 1

    @pytest.mark.asyncio
    async def test_random_denied(self, hub, consumer, provider, fake_backend):
        pipeline = CoHostPipeline(hub, provider, _gate(chance=0.2, rand=0.9))
        result = await pipeline.process_audio(AUDIO_OK)
        assert result["gaya"] is None
        fake_backend.generate_mock.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unclassified_error_reported(self, hub, consumer, provider, fake_backend):
        fake_backend.generate_mock.side_effect = RuntimeError("weird response")
        pipeline = CoHostPipeline(hub, provider, _gate())
        assert await pipeline.process_audio(AUDIO_OK) == {"error": "weird response"}
        consumer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_configured_sentinel_broadcast(self, hub, consumer, personality):
        provider = GenerationProvider(personalities=[personality], transcriber=FakeBackend())
        pipeline = CoHostPipeline(hub, provider, _gate())
        result = await pipeline.process_audio(AUDIO_OK)
        assert result["gaya"] == "（AIの設定がされていません）"

    @pytest.mark.asyncio
    async def test_multi_personality_unique_ids(self, hub, consumer):
        backend = FakeBackend()
        backend.generate_mock.side_effect = lambda system_prompt, text: f"{system_prompt}!"
        provider = GenerationProvider(
            personalities=[Personality("A", "a", "https://a.png"), Personality("B", "b")],
            backend=backend,
        )
        pipeline = CoHostPipeline(hub, provider, _gate(), multi_personality=True)

        result = await pipeline.process_audio(AUDIO_OK)

        assert sorted(r["text"] for r in result["replies"]) == ["a!", "b!"]
        payloads = [call.args[0] for call in consumer.await_args_list]
        assert len({p["id"] for p in payloads}) == 2
        by_name = {p["name"]: p for p in payloads}
        assert by_name["A"]["avatarUrl"] == "https://a.png"
        assert by_name["B"]["avatarUrl"].startswith("https://api.dicebear.com/")


class TestRemoteSettings:
    @pytest.mark.asyncio
    async def test_remote_prompt_used(self, hub, consumer, provider, fake_backend):
        monitor = _remote_monitor(GayaSettings(character="ギャル子", system_prompt="ギャル語で", enabled=True))
        pipeline = CoHostPipeline(hub, provider, _gate(), monitor=monitor)

        result = await pipeline.process_audio(AUDIO_OK)

        assert fake_backend.generate_mock.await_args.args[0] == "ギャル語で"
        assert result["replies"][0]["name"] == "ギャル子"

    @pytest.mark.asyncio
    async def test_remote_disabled_skips_generation(self, hub, consumer, provider, fake_backend):
        monitor = _remote_monitor(GayaSettings(enabled=False))
        pipeline = CoHostPipeline(hub, provider, _gate(), monitor=monitor)

        result = await pipeline.process_audio(AUDIO_OK)

        assert result == {"text": "こんにちは", "gaya": None, "replies": []}
        fake_backend.generate_mock.assert_not_awaited()
        consumer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remote_unavailable_falls_back_to_local(self, hub, consumer, provider, fake_backend):
        monitor = _remote_monitor(None)
        pipeline = CoHostPipeline(hub, provider, _gate(), monitor=monitor)
        await pipeline.process_audio(AUDIO_OK)
        assert fake_backend.generate_mock.await_args.args[0] == "短くツッコんで"


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_chat_replies(hub, provider, fake_backend):
    started = asyncio.Event()

    async def slow(system_prompt, text):
        started.set()
        await asyncio.sleep(10)
        return "late"

    fake_backend.generate_mock.side_effect = slow
    pipeline = CoHostPipeline(hub, provider, _gate(), reply_to_chat=True)
    await pipeline.handle_chat_event({"author": {"name": "v"}, "message": "hi"})
    await started.wait()

    await pipeline.shutdown()
    assert not pipeline._tasks
