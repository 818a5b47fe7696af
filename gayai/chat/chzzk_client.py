"""
치지직 Socket.IO 클라이언트
실시간 채팅/후원 이벤트를 raw 이벤트로 변환해 넘깁니다.

참고: https://chzzk.gitbook.io/chzzk/chzzk-api/session
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import httpx
import socketio

from .base_client import ChatClient, EventCallback, build_raw_event

logger = logging.getLogger(__name__)

CHZZK_API_BASE_URL = "https://openapi.chzzk.naver.com"


def _parse_payload(data: Any) -> Optional[Dict[str, Any]]:
    """Socket.IO payload(문자열 JSON 또는 dict) → dict. 해석 불가면 None."""
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


class ChzzkSocketIOClient(ChatClient):
    """치지직 Socket.IO 클라이언트

    치지직은 WebSocket이 아닌 Socket.IO를 사용합니다.
    먼저 세션 생성 API를 호출하여 연결 URL을 받아야 합니다.
    """

    @property
    def platform_name(self) -> str:
        return "chzzk"

    def __init__(
        self,
        source_id: str,
        access_token: Optional[str] = None,
        on_event: Optional[EventCallback] = None,
        reconnect_delay: float = 5.0,
        max_reconnect_attempts: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            source_id: 치지직 채널 ID
            access_token: Access Token (유저 인증, 세션 생성/구독에 필요)
            on_event: raw 이벤트 콜백
            transport: 테스트용 httpx transport
        """
        super().__init__(source_id, on_event, reconnect_delay, max_reconnect_attempts)
        self.access_token = access_token
        self._transport = transport

        self.sio: Optional[socketio.AsyncClient] = None
        self.session_url: Optional[str] = None
        self.session_key: Optional[str] = None
        self.api_base_url = CHZZK_API_BASE_URL

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}

    async def _get_session_url(self) -> str:
        """세션 생성 API (GET /open/v1/sessions/auth) 호출하여 Socket.IO 연결 URL 획득"""
        if not self.access_token:
            raise ValueError("치지직 access_token이 필요합니다 (CHZZK_ACCESS_TOKEN)")
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(
                f"{self.api_base_url}/open/v1/sessions/auth",
                headers=self._headers(),
            )
            response.raise_for_status()
            data = response.json()
        # 공통 응답: {"code": 200, "content": { "url": "..." }}
        body = data.get("content") if data.get("content") is not None else data
        return body["url"]

    async def connect(self):
        """Socket.IO 연결"""
        try:
            self.session_url = await self._get_session_url()
            logger.info(f"[{self.platform_name}] 세션 URL 획득 성공")

            self.sio = socketio.AsyncClient(
                reconnection=False,  # 재연결은 ChatClient._reconnect
                logger=False,
                engineio_logger=False
            )
            self.sio.on("connect", self._on_connect)
            self.sio.on("SYSTEM", self._on_system_message)
            self.sio.on("disconnect", self._on_disconnect)

            logger.info(f"[{self.platform_name}] Socket.IO 연결 시도")
            await self.sio.connect(self.session_url, transports=["websocket"])

            self.is_connected = True
            self.reconnect_attempts = 0
            logger.info(f"[{self.platform_name}] Socket.IO 연결 성공")

        except Exception as e:
            logger.error(f"[{self.platform_name}] 연결 실패: {e}")
            self.is_connected = False
            raise

    def _on_connect(self):
        logger.info(f"[{self.platform_name}] Socket.IO 연결 완료")

    def _on_disconnect(self, *args):
        logger.warning(f"[{self.platform_name}] Socket.IO 연결 종료")
        self.is_connected = False

    async def _on_system_message(self, data):
        """
        시스템 메시지 (Event Type SYSTEM, Body { type, data })
        connected 메시지에서 sessionKey를 얻고 채팅·후원 구독
        """
        payload = _parse_payload(data)
        if payload is None:
            logger.debug(f"[{self.platform_name}] SYSTEM payload 해석 불가: {str(data)[:100]!r}")
            return
        msg_type = payload.get("type")
        body = payload.get("data") or {}
        try:
            if msg_type == "connected":
                self.session_key = body.get("sessionKey")
                logger.info(f"[{self.platform_name}] 세션 키 획득")
                await self._subscribe("chat", "CHAT", self._on_chat_message)
                try:
                    await self._subscribe("donation", "DONATION", self._on_donation_message)
                except Exception as e:
                    logger.warning(f"[{self.platform_name}] 후원 구독 실패 (채팅만 사용): {e}")
            elif msg_type == "subscribed":
                event_type, channel_id = body.get("eventType"), body.get("channelId")
                logger.info(f"[{self.platform_name}] 구독 완료: {event_type} - {channel_id}")
            elif msg_type == "unsubscribed":
                logger.warning(f"[{self.platform_name}] 채널 구독 취소됨")
            elif msg_type == "revoked":
                logger.error(f"[{self.platform_name}] 이벤트 권한 취소됨")
        except Exception as e:
            logger.error(f"[{self.platform_name}] 시스템 메시지 처리 오류: {e}")

    async def _subscribe(self, kind: str, event_name: str, handler) -> None:
        """POST /open/v1/sessions/events/subscribe/{kind} (Request Param sessionKey)"""
        if not self.session_key:
            logger.error(f"[{self.platform_name}] 세션 키가 없어 구독할 수 없습니다")
            return
        url = f"{self.api_base_url}/open/v1/sessions/events/subscribe/{kind}"
        params = {"sessionKey": self.session_key, "channelId": self.source_id}
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(url, params=params, headers=self._headers())
            response.raise_for_status()
        logger.info(f"[{self.platform_name}] {kind} 구독 요청 완료: {self.source_id}")
        if self.sio is not None:
            self.sio.on(event_name, handler)

    def chat_to_raw(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """CHAT 이벤트 (profile, content, messageTime(ms), emojis) → raw 이벤트"""
        profile = data.get("profile") or {}
        content = data.get("content") or ""
        # 이모지는 본문에 {:key:} 형태로 포함되어 있으므로 텍스트 한 조각으로 전달
        return build_raw_event(
            author_name=profile.get("nickname") or "",
            parts=[{"text": content}],
            timestamp=data.get("messageTime") or None,
            avatar_url=profile.get("profileImageUrl") or None,
        )

    def donation_to_raw(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """DONATION 이벤트 (donatorNickname, payAmount, donationText) → raw 이벤트"""
        nickname = (data.get("donatorNickname") or "").strip() or "시청자"
        pay_amount = str(data.get("payAmount") or "0").strip()
        donation_text = (data.get("donationText") or "").strip()
        if donation_text:
            text = f"{pay_amount}원 후원: {donation_text}"
        else:
            text = f"{pay_amount}원 후원했습니다"
        return build_raw_event(author_name=nickname, parts=[{"text": text}])

    async def _on_chat_message(self, data):
        payload = _parse_payload(data)
        if payload is None:
            logger.debug(f"[{self.platform_name}] CHAT payload 해석 불가: {str(data)[:100]!r}")
            return
        await self._emit(self.chat_to_raw(payload))

    async def _on_donation_message(self, data):
        payload = _parse_payload(data)
        if payload is None:
            return
        raw = self.donation_to_raw(payload)
        donator = raw["author"]["name"]
        logger.info(f"[{self.platform_name}] 후원 수신: {donator}")
        await self._emit(raw)

    async def disconnect(self):
        """Socket.IO 연결 종료"""
        if self.sio:
            await self.sio.disconnect()
            self.is_connected = False
            logger.info(f"[{self.platform_name}] Socket.IO 연결 종료")

    async def listen(self):
        """수신 대기 루프 (Socket.IO는 이벤트 기반, 연결 유지와 재연결만 담당)"""
        self._running = True

        while self._running:
            try:
                if not self.is_connected:
                    if not await self._reconnect():
                        break
                    continue
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[{self.platform_name}] 예상치 못한 오류: {e}")
                self.is_connected = False
                await asyncio.sleep(1)
