"""
오버레이 + 로컬 컨트롤 HTTP 서버.

- /              : OBS 브라우저 소스 (Socket.IO 'new-comment' 수신)
- /api/state     : 컨트롤 화면용 최근 코멘트 + 연결 상태
- /api/control/* : 서버 URL / 채팅 소스 / 음성 / AI 설정 제어
Socket.IO 이벤트: 'new-comment' (코멘트), 'server-status-changed' (백엔드 연결 상태)
Socket.IO는 같은 ASGI 앱(socketio.ASGIApp)으로 묶어 하나의 이벤트 루프에서 서빙.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

import socketio
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

if TYPE_CHECKING:
    from gayai.app import AppContext
    from gayai.monitor.connection_monitor import ConnectionMonitor, ConnectionStatus

logger = logging.getLogger(__name__)

STATUS_EVENT = "server-status-changed"


class ServerUrlBody(BaseModel):
    url: str = ""


class ChatStartBody(BaseModel):
    platform: str = ""
    source_id: str = ""


class AISettingsBody(BaseModel):
    provider: str = ""
    api_key: str = ""
    deepgram_key: Optional[str] = None
    model: Optional[str] = None


def _control_router(ctx: "AppContext") -> APIRouter:
    router = APIRouter(prefix="/api/control")

    @router.post("/server/url")
    async def set_server_url(body: ServerUrlBody):
        return JSONResponse(await ctx.monitor.set_server_url(body.url))

    @router.post("/server/check")
    async def check_server():
        connected = await ctx.monitor.check_connection()
        if connected:
            return JSONResponse({"success": True})
        error = "Server URL is not configured" if not ctx.monitor.server_url else "Server is unreachable"
        return JSONResponse({"success": False, "error": error})

    @router.get("/server/status")
    async def server_status():
        return JSONResponse(ctx.monitor.get_status().to_dict())

    @router.post("/chat/start")
    async def chat_start(body: ChatStartBody):
        return JSONResponse(await ctx.chat.start(body.platform, body.source_id))

    @router.post("/chat/stop")
    async def chat_stop():
        return JSONResponse(await ctx.chat.stop())

    @router.post("/ai/audio")
    async def ai_audio(request: Request):
        """raw body = 한 발화 녹음 (audio/webm). 너무 짧으면 null."""
        audio = await request.body()
        return JSONResponse(await ctx.pipeline.process_audio(audio))

    @router.post("/ai/settings")
    async def ai_settings(body: AISettingsBody):
        ok = ctx.provider.configure(
            body.provider, body.api_key, deepgram_key=body.deepgram_key, model=body.model
        )
        logger.info(f"Control API: ai settings provider={body.provider} ok={ok}")
        return JSONResponse(ok)

    return router


def create_app(ctx: "AppContext") -> FastAPI:
    app = FastAPI(title="GAYAI Overlay", docs_url=None, redoc_url=None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(_control_router(ctx))

    @app.get("/api/state")
    async def get_state():
        """컨트롤 화면: 최근 시청자 채팅 / 가야 + 연결 상태"""
        state: Dict[str, Any] = ctx.recent.snapshot()
        state["status"] = ctx.monitor.get_status().to_dict()
        state["consumers"] = ctx.hub.consumer_count
        return JSONResponse(state)

    @app.post("/api/clear")
    async def clear_state():
        ctx.recent.clear()
        logger.info("Overlay API: clear")
        return JSONResponse({"ok": True})

    @app.get("/", response_class=HTMLResponse)
    async def overlay_page():
        """OBS 브라우저 소스에 넣을 URL."""
        return HTMLResponse(OVERLAY_HTML)

    return app


def attach_status_events(monitor: "ConnectionMonitor", sio: socketio.AsyncServer) -> None:
    """체크/URL 변경마다 연결 상태를 모든 Socket.IO 클라이언트에 push."""

    async def _emit_status(status: "ConnectionStatus") -> None:
        await sio.emit(STATUS_EVENT, status.to_dict())

    monitor.add_listener(_emit_status)


def create_asgi_app(
    ctx: "AppContext", sio: Optional[socketio.AsyncServer] = None
) -> socketio.ASGIApp:
    """Socket.IO 서버를 Hub/모니터에 연결하고 FastAPI 앱과 하나의 ASGI 앱으로 묶음."""
    if sio is None:
        sio = socketio.AsyncServer(
            async_mode="asgi",
            cors_allowed_origins="*",
            logger=False,
            engineio_logger=False,
        )
    ctx.hub.attach(sio)
    attach_status_events(ctx.monitor, sio)
    return socketio.ASGIApp(sio, other_asgi_app=create_app(ctx))


OVERLAY_HTML = """<!DOCTYPE html>
<html lang="ja">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>GAYAI Overlay</title>
  <script src="https://cdn.socket.io/4.7.5/socket.io.min.js"></script>
  <style>
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body {
      font-family: "Hiragino Sans", "Noto Sans JP", sans-serif;
      background: transparent;
      height: 100vh;
      overflow: hidden;
    }
    #comment-container {
      position: absolute;
      left: 16px; right: 16px; bottom: 16px;
      display: flex;
      flex-direction: column;
      gap: 10px;
    }
    .comment {
      display: flex;
      align-items: flex-start;
      gap: 10px;
      padding: 10px 14px;
      border-radius: 14px;
      background: rgba(30, 30, 40, 0.85);
      color: #fff;
      opacity: 0;
      transform: translateY(16px);
      animation: slideUp 0.35s ease-out forwards;
      transition: opacity 0.5s ease;
    }
    /* 가야 (AI 답변) */
    .comment.gaya {
      background: rgba(255, 120, 170, 0.9);
      border-left: 5px solid #ffd1e3;
    }
    .comment.fade-out { opacity: 0 !important; }
    .comment-avatar { width: 36px; height: 36px; border-radius: 50%; background: #fff; }
    .comment-name { font-size: 13px; opacity: 0.8; }
    .comment-text { font-size: 18px; line-height: 1.4; word-break: break-word; }
    @keyframes slideUp { to { opacity: 1; transform: translateY(0); } }
  </style>
</head>
<body>
  <div id="comment-container"></div>
  <script>
    var MAX_COMMENTS = 8;
    var COMMENT_LIFETIME = 15000;

    function escapeHtml(text) {
      var div = document.createElement("div");
      div.textContent = text == null ? "" : String(text);
      return div.innerHTML;
    }

    function addComment(comment) {
      var container = document.getElementById("comment-container");
      var el = document.createElement("div");
      el.className = "comment" + (comment.isGaya ? " gaya" : "");
      var avatarUrl = comment.avatarUrl ||
        ("https://api.dicebear.com/7.x/thumbs/svg?seed=" + encodeURIComponent(comment.name || ""));
      el.innerHTML =
        '<img class="comment-avatar" src="' + escapeHtml(avatarUrl) + '" alt="">' +
        '<div class="comment-content">' +
        '<div class="comment-name">' + escapeHtml(comment.name) + '</div>' +
        '<div class="comment-text">' + escapeHtml(comment.text) + '</div>' +
        '</div>';
      container.appendChild(el);
      while (container.children.length > MAX_COMMENTS) {
        container.removeChild(container.firstChild);
      }
      setTimeout(function() {
        el.classList.add("fade-out");
        setTimeout(function() { if (el.parentNode) el.parentNode.removeChild(el); }, 500);
      }, COMMENT_LIFETIME);
    }

    var socket = io({ transports: ["websocket", "polling"] });
    socket.on("new-comment", addComment);
  </script>
</body>
</html>
"""
