"""
Connection Monitor 테스트 (httpx.MockTransport)
"""

import asyncio
import json

import httpx
import pytest

from gayai.config import ServerConfigStore
from gayai.monitor.connection_monitor import ConnectionMonitor, GayaSettings, validate_server_url

OVERLAY = "http://localhost:3001/"


def _monitor(tmp_path, handler, url=None):
    store = ServerConfigStore(tmp_path / "server-config.json")
    if url:
        store.save(url)
    return ConnectionMonitor(store, OVERLAY, transport=httpx.MockTransport(handler))


def _recorder(responses):
    """path → status 또는 예외. 호출된 path를 순서대로 기록."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        result = responses.get(request.url.path, 404)
        if isinstance(result, Exception):
            raise result
        return httpx.Response(result)

    return handler, calls


@pytest.mark.asyncio
async def test_first_reachable_path_wins(tmp_path):
    handler, calls = _recorder({"/health": 200})
    monitor = _monitor(tmp_path, handler, url="http://backend:3000")

    assert await monitor.check_connection() is True
    assert calls == ["/health"]
    status = monitor.get_status()
    assert status.is_connected is True
    assert status.last_checked_at is not None


@pytest.mark.asyncio
async def test_falls_through_on_network_error_and_5xx(tmp_path):
    handler, calls = _recorder({
        "/health": httpx.ConnectError("refused"),
        "/api/health": 503,
        "/": 404,
    })
    monitor = _monitor(tmp_path, handler, url="http://backend:3000")

    assert await monitor.check_connection() is True
    assert calls == ["/health", "/api/health", "/"]


@pytest.mark.asyncio
async def test_unreachable(tmp_path):
    handler, calls = _recorder({"/health": 500, "/api/health": 502, "/": httpx.ReadTimeout("slow")})
    monitor = _monitor(tmp_path, handler, url="http://backend:3000")
    assert await monitor.check_connection() is False
    assert monitor.get_status().is_connected is False
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_unconfigured_makes_no_request(tmp_path):
    handler, calls = _recorder({})
    monitor = _monitor(tmp_path, handler)
    assert await monitor.check_connection() is False
    assert calls == []
    assert monitor.get_status().to_dict()["serverUrl"] is None


@pytest.mark.asyncio
async def test_set_server_url_rejects_non_http(tmp_path):
    handler, calls = _recorder({})
    monitor = _monitor(tmp_path, handler)
    result = await monitor.set_server_url("ftp://backend")
    assert result == {"success": False, "error": "URL must start with http:// or https://"}
    assert not (tmp_path / "server-config.json").exists()
    assert calls == []


@pytest.mark.asyncio
async def test_set_server_url_persists_and_checks(tmp_path):
    handler, calls = _recorder({"/health": 200})
    monitor = _monitor(tmp_path, handler)
    statuses = []
    monitor.add_listener(statuses.append)

    result = await monitor.set_server_url("https://gayai.example.com/")
    assert result == {"success": True}
    saved = json.loads((tmp_path / "server-config.json").read_text(encoding="utf-8"))
    assert saved == {"serverUrl": "https://gayai.example.com"}
    assert calls == ["/health"]
    assert statuses[-1].is_connected is True
    assert statuses[-1].to_dict()["overlayUrl"] == OVERLAY


def test_validate_server_url():
    assert validate_server_url("http://localhost:3000") is None
    assert validate_server_url("https://x.y") is None
    assert validate_server_url("localhost:3000") is not None
    assert validate_server_url("http://") == "Invalid URL format"
    assert validate_server_url("") is not None


@pytest.mark.asyncio
async def test_get_status_is_a_copy(tmp_path):
    handler, _ = _recorder({"/health": 200})
    monitor = _monitor(tmp_path, handler, url="http://backend:3000")
    before = monitor.get_status()
    await monitor.check_connection()
    assert before.is_connected is False
    assert monitor.get_status().is_connected is True


@pytest.mark.asyncio
async def test_fetch_gaya_settings(tmp_path):
    def handler(request):
        assert request.url.path == "/api/prompts/gaya-settings"
        return httpx.Response(200, json={"character": "ギャル", "system_prompt": "ギャル語で", "enabled": False})

    monitor = _monitor(tmp_path, handler, url="http://backend:3000")
    assert await monitor.fetch_gaya_settings() == GayaSettings("ギャル", "ギャル語で", False)


@pytest.mark.asyncio
async def test_fetch_gaya_settings_error_returns_none(tmp_path):
    monitor = _monitor(tmp_path, lambda request: httpx.Response(500), url="http://backend:3000")
    assert await monitor.fetch_gaya_settings() is None
    unconfigured = _monitor(tmp_path / "other", lambda request: httpx.Response(200, json={}))
    assert await unconfigured.fetch_gaya_settings() is None


@pytest.mark.asyncio
async def test_periodic_ticks_skip_while_check_in_flight(tmp_path):
    release = asyncio.Event()
    calls = []

    async def handler(request):
        calls.append(request.url.path)
        await release.wait()
        return httpx.Response(200)

    monitor = _monitor(tmp_path, handler, url="http://backend:3000")
    monitor.start(interval=0.01)
    await asyncio.sleep(0.08)
    assert calls == ["/health"]
    assert monitor.running

    release.set()
    await asyncio.sleep(0.05)
    assert monitor.get_status().is_connected is True
    assert len(calls) >= 2

    await monitor.stop()
    assert not monitor.running
    count = len(calls)
    await asyncio.sleep(0.05)
    assert len(calls) == count


@pytest.mark.asyncio
async def test_url_change_discards_in_flight_check_of_old_url(tmp_path):
    release_old = asyncio.Event()
    old_started = asyncio.Event()

    async def handler(request):
        if request.url.host == "old.example":
            old_started.set()
            await release_old.wait()
            return httpx.Response(503)
        return httpx.Response(200)

    monitor = _monitor(tmp_path, handler, url="http://old.example")
    monitor.start(interval=3600)
    await asyncio.wait_for(old_started.wait(), timeout=1.0)

    assert await monitor.set_server_url("http://new.example") == {"success": True}
    assert monitor.get_status().is_connected is True

    release_old.set()
    await asyncio.sleep(0.05)
    status = monitor.get_status()
    assert status.server_url == "http://new.example"
    assert status.is_connected is True
    await monitor.stop()
