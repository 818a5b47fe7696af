"""
코호스트 파이프라인: 채팅/음성 입력 → Reply Policy → 가야 생성 → Broadcast Hub.

- 채팅: 정규화 후 도착 순서대로 바로 브로드캐스트. 채팅 가야(옵션)는 별도 태스크.
- 음성: 전사 → 게이트 → 생성 → 브로드캐스트, 결과를 {text, gaya} 로 반환.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from gayai.ai.models import Personality, PersonalityReply
from gayai.ai.provider import GenerationProvider
from gayai.ai.reply_policy import ReplyGate
from gayai.chat.comment import AI_AUTHOR_NAME, AI_AVATAR_URL, Comment, make_comment_id, now_ms
from gayai.chat.normalizer import CommentNormalizer
from gayai.monitor.connection_monitor import ConnectionMonitor
from gayai.overlay.hub import BroadcastHub
from gayai.utils.encoding_repair import repair

logger = logging.getLogger(__name__)


class CoHostPipeline:
    def __init__(
        self,
        hub: BroadcastHub,
        provider: GenerationProvider,
        gate: ReplyGate,
        normalizer: Optional[CommentNormalizer] = None,
        monitor: Optional[ConnectionMonitor] = None,
        reply_to_chat: bool = False,
        multi_personality: bool = False,
    ):
        self.hub = hub
        self.provider = provider
        self.gate = gate
        self.normalizer = normalizer or CommentNormalizer()
        self.monitor = monitor
        self.reply_to_chat = reply_to_chat
        self.multi_personality = multi_personality
        self._tasks: Set[asyncio.Task] = set()

    # ---- 채팅 ----

    async def handle_chat_event(self, raw: Dict[str, Any]) -> Optional[Comment]:
        """채팅 소스 raw 이벤트 하나 처리. 본문이 비면 버림."""
        comment = self.normalizer.normalize(raw)
        if not comment.text.strip():
            logger.debug(f"빈 채팅 무시: {comment.author_name}")
            return None
        sent = await self.hub.broadcast(comment)
        if self.reply_to_chat:
            self._spawn(self._reply_to_chat(sent))
        return sent

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _reply_to_chat(self, comment: Comment) -> None:
        decision = self.gate.try_acquire(now_ms())
        if not decision.allow:
            logger.debug(f"채팅 가야 건너뜀 ({decision.reason}): {comment.text[:30]}")
            return
        try:
            await self._generate_and_broadcast(f"{comment.author_name}: {comment.text}")
        except Exception as e:
            logger.error(f"채팅 가야 생성 실패: {e}")

    # ---- 음성 ----

    async def process_audio(self, audio: bytes) -> Optional[Dict[str, Any]]:
        """
        한 발화 처리.

        Returns:
            None: 너무 짧거나 조용해서 처리할 게 없음
            {"text", "gaya", "replies"}: gaya는 첫 답변 (게이트/비활성으로 없으면 None)
            {"error"}: 분류되지 않은 생성 오류
        """
        try:
            text = await self.provider.transcribe(audio)
            if not text:
                return None
            logger.info(f"음성 전사: {text[:80]}")

            decision = self.gate.try_acquire(now_ms())
            if not decision.allow:
                logger.info(f"가야 건너뜀 ({decision.reason})")
                return {"text": text, "gaya": None, "replies": []}

            replies = await self._generate_and_broadcast(text)
        except Exception as e:
            logger.exception(f"음성 처리 실패: {e}")
            return {"error": str(e) or type(e).__name__}

        return {
            "text": text,
            "gaya": replies[0].text if replies else None,
            "replies": [{"name": r.author_name, "text": r.text} for r in replies],
        }

    # ---- 생성 ----

    async def _remote_personality(self) -> Optional[Personality]:
        """
        컴패니언 서버가 연결되어 있으면 원격 가야 설정 사용.
        enabled=False면 빈 이름의 Personality (생성 안 함 표시).
        """
        if self.monitor is None or not self.monitor.get_status().is_connected:
            return None
        settings = await self.monitor.fetch_gaya_settings()
        if settings is None:
            return None
        if not settings.enabled:
            return Personality(name="", system_prompt="")
        if not settings.system_prompt.strip():
            return None
        return Personality(
            name=settings.character.strip() or AI_AUTHOR_NAME,
            system_prompt=settings.system_prompt,
            avatar_url=AI_AVATAR_URL,
        )

    async def _generate(self, text: str) -> List[PersonalityReply]:
        remote = await self._remote_personality()
        if remote is not None:
            if not remote.name:
                logger.info("원격 설정에서 가야 비활성화됨")
                return []
            reply = await self.provider.generate_reply(remote.system_prompt, text)
            return [PersonalityReply(remote, reply)] if reply.strip() else []

        if self.multi_personality and len(self.provider.personalities) > 1:
            return await self.provider.generate_reply_for_all_personalities(text)

        if not self.provider.personalities:
            logger.warning("캐릭터가 설정되지 않았습니다.")
            return []
        personality = self.provider.personalities[0]
        reply = await self.provider.generate_reply(personality.system_prompt, text)
        return [PersonalityReply(personality, reply)] if reply.strip() else []

    async def _generate_and_broadcast(self, text: str) -> List[Comment]:
        results = await self._generate(text)
        sent: List[Comment] = []
        base_ts = now_ms()
        for i, result in enumerate(results):
            personality = result.personality
            comment_id = make_comment_id("gaya", base_ts)
            if len(results) > 1:
                comment_id = f"{comment_id}-{i}"
            comment = Comment.reply(
                repair(result.text),
                author_name=personality.name or AI_AUTHOR_NAME,
                avatar_url=personality.avatar_url or AI_AVATAR_URL,
                timestamp=base_ts,
                comment_id=comment_id,
            )
            sent.append(await self.hub.broadcast(comment))
        return sent

    async def shutdown(self) -> None:
        """진행 중인 채팅 가야 태스크 취소."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
