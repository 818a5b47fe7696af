"""
컨트롤/오버레이 HTTP API 테스트 (FastAPI TestClient)
"""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest
import socketio
from fastapi.testclient import TestClient

from gayai.app import build_context
from gayai.chat.comment import Comment
from gayai.config import ServerConfigStore
from gayai.monitor.connection_monitor import ConnectionMonitor
from gayai.overlay.server import STATUS_EVENT, create_app, create_asgi_app


@pytest.fixture
def ctx(settings):
    context = build_context(settings)
    # 실제 네트워크 대신 MockTransport
    context.monitor = ConnectionMonitor(
        ServerConfigStore(settings.server_config_path),
        settings.overlay_url,
        transport=httpx.MockTransport(lambda request: httpx.Response(200)),
    )
    context.pipeline.monitor = context.monitor
    return context


@pytest.fixture
def client(ctx):
    return TestClient(create_app(ctx))


def test_overlay_page(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "new-comment" in response.text
    assert "socket.io" in response.text


def test_server_status_unconfigured(client, settings):
    data = client.get("/api/control/server/status").json()
    assert data == {
        "isConnected": False,
        "serverUrl": None,
        "overlayUrl": settings.overlay_url,
        "lastChecked": None,
    }


def test_server_check_unconfigured(client):
    data = client.post("/api/control/server/check").json()
    assert data["success"] is False
    assert "error" in data


def test_set_invalid_server_url(client):
    data = client.post("/api/control/server/url", json={"url": "not a url"}).json()
    assert data["success"] is False
    assert data["error"]


def test_set_server_url_then_status(client, settings):
    data = client.post("/api/control/server/url", json={"url": "http://backend:3000"}).json()
    assert data == {"success": True}
    status = client.get("/api/control/server/status").json()
    assert status["isConnected"] is True
    assert status["serverUrl"] == "http://backend:3000"
    assert settings.server_config_path.exists()
    assert client.post("/api/control/server/check").json() == {"success": True}


def test_chat_start_unknown_platform(client):
    data = client.post("/api/control/chat/start", json={"platform": "twitch", "source_id": "abc"}).json()
    assert data["success"] is False
    assert "twitch" in data["error"]


def test_chat_start_youtube_without_key(client):
    data = client.post(
        "/api/control/chat/start", json={"platform": "youtube", "source_id": "dQw4w9WgXcQ"}
    ).json()
    assert data["success"] is False
    assert "YOUTUBE_API_KEY" in data["error"]


def test_chat_stop_when_idle(client):
    assert client.post("/api/control/chat/stop").json() == {"success": True}


def test_short_audio_returns_null(client):
    response = client.post("/api/control/ai/audio", content=b"abc")
    assert response.status_code == 200
    assert response.json() is None


def test_ai_settings(client, ctx):
    assert client.post("/api/control/ai/settings", json={"provider": "nope", "api_key": "k"}).json() is False
    assert client.post("/api/control/ai/settings", json={"provider": "openai", "api_key": "sk-test"}).json() is True
    assert ctx.provider.provider == "openai"


def test_state_lists_recent_comments(ctx):
    asyncio.run(ctx.hub.broadcast(Comment.viewer("v", "hello")))
    asyncio.run(ctx.hub.broadcast(Comment.reply("草")))

    with TestClient(create_app(ctx)) as client:
        state = client.get("/api/state").json()
        assert [c["text"] for c in state["viewer_messages"]] == ["hello"]
        assert [c["text"] for c in state["gaya_messages"]] == ["草"]
        assert state["status"]["isConnected"] is False

        assert client.post("/api/clear").json() == {"ok": True}
        state = client.get("/api/state").json()
        assert state["viewer_messages"] == [] and state["gaya_messages"] == []


def test_asgi_app_wraps_socketio(ctx):
    assert isinstance(create_asgi_app(ctx), socketio.ASGIApp)


def test_status_changes_pushed_over_socketio(ctx):
    sio = socketio.AsyncServer(async_mode="asgi")
    sio.emit = AsyncMock()
    create_asgi_app(ctx, sio=sio)

    assert asyncio.run(ctx.monitor.set_server_url("http://backend:3000")) == {"success": True}

    sio.emit.assert_awaited_once()
    event, payload = sio.emit.await_args.args
    assert event == STATUS_EVENT
    assert payload == ctx.monitor.get_status().to_dict()
    assert payload["isConnected"] is True
    assert payload["serverUrl"] == "http://backend:3000"
