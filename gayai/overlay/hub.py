"""
Broadcast Hub: Comment를 접속 중인 모든 오버레이(OBS 브라우저 소스)와 로컬 컨트롤 화면에 배포.

- 전달은 best-effort, 접속 중인 컨슈머당 최대 1회
- 나중에 접속한 컨슈머는 이전 이벤트를 받지 않음 (버퍼/리플레이 없음)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import socketio

from gayai.chat.comment import Comment
from gayai.utils.encoding_repair import repair

logger = logging.getLogger(__name__)

COMMENT_EVENT = "new-comment"

ConsumerSend = Callable[[Dict[str, Any]], Awaitable[None]]
Listener = Callable[[Comment], Any]


class BroadcastHub:
    """오버레이 컨슈머 집합 + 로컬 리스너. 단일 이벤트 루프에서만 변경된다."""

    def __init__(self, overlay_url: str):
        self.overlay_url = overlay_url
        self._consumers: Dict[str, ConsumerSend] = {}
        self._listeners: List[Listener] = []

    @property
    def consumer_count(self) -> int:
        return len(self._consumers)

    def connect(self, consumer_id: str, send: ConsumerSend) -> None:
        """새 컨슈머 등록. 기존 연결에는 영향 없음."""
        self._consumers[consumer_id] = send
        logger.info(f"오버레이 연결: {consumer_id} (총 {len(self._consumers)})")

    def disconnect(self, consumer_id: str) -> None:
        if self._consumers.pop(consumer_id, None) is not None:
            logger.info(f"오버레이 연결 종료: {consumer_id} (총 {len(self._consumers)})")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """로컬 리스너 등록 (컨트롤 화면 등). 반환값 호출 시 해제."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def broadcast(self, comment: Comment) -> Comment:
        """이름/본문 문자化け 복구 후 배포. 실제로 보낸 Comment 반환."""
        fixed_name = repair(comment.author_name)
        fixed_text = repair(comment.text)
        if fixed_name != comment.author_name or fixed_text != comment.text:
            logger.info(
                f"문자화け 수정: name={comment.author_name!r} -> {fixed_name!r}, "
                f"text={comment.text[:40]!r} -> {fixed_text[:40]!r}"
            )
            comment = comment.with_text(fixed_name, fixed_text)

        payload = comment.to_payload()
        # 배포 도중 접속/해제가 생겨도 이 호출 시점의 컨슈머에게만 보냄
        targets = list(self._consumers.items())
        if targets:
            results = await asyncio.gather(
                *(send(payload) for _, send in targets), return_exceptions=True
            )
            for (consumer_id, _), result in zip(targets, results):
                if isinstance(result, Exception):
                    logger.warning(f"오버레이 전송 실패 ({consumer_id}): {result}")

        for listener in list(self._listeners):
            try:
                res = listener(comment)
                if asyncio.iscoroutine(res):
                    await res
            except Exception as e:
                logger.warning(f"리스너 처리 오류: {e}")

        kind = "gaya" if comment.is_reply else "chat"
        logger.info(
            f"브로드캐스트: [{kind}] {comment.author_name}: {comment.text[:50]} "
            f"(consumers={len(targets)})"
        )
        return comment

    def attach(self, sio: socketio.AsyncServer) -> None:
        """Socket.IO 서버 연결/해제 이벤트를 컨슈머 등록/해제에 연결."""

        async def _connect(sid: str, environ: dict, auth: Optional[dict] = None) -> None:
            async def _send(payload: Dict[str, Any]) -> None:
                await sio.emit(COMMENT_EVENT, payload, to=sid)

            self.connect(sid, _send)

        async def _disconnect(sid: str, *args) -> None:
            self.disconnect(sid)

        sio.on("connect", _connect)
        sio.on("disconnect", _disconnect)
