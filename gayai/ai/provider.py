"""
Generation Provider: 전사 + 가야 생성 + 멀티 캐릭터 병렬 생성.
백엔드 에러는 고정 문구로 바꾸고, 분류 안 되는 에러만 호출자에게 올린다.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Iterable, List, Optional

from .backends import DeepgramTranscriber, GenerationBackend, Transcriber, create_backend
from .errors import BackendErrorKind, classify_backend_error
from .models import Personality, PersonalityReply
from .text import sanitize_prompt_text, strip_wrapping_brackets

logger = logging.getLogger(__name__)

# 이보다 작은 음성은 녹음 조각으로 보고 API 호출 안 함
MIN_AUDIO_BYTES = 1000

NOT_CONFIGURED_REPLY = "（AIの設定がされていません）"
RATE_LIMITED_REPLY = "（AIがちょっと休憩中…しばらくしてからまた話しかけてね）"
UNAUTHORIZED_REPLY = "（APIキーの設定を確認してください）"


class GenerationProvider:
    """활성 백엔드 하나 + (선택) 전용 전사기. 캐릭터 목록은 시작 시 고정."""

    def __init__(
        self,
        personalities: Iterable[Personality] = (),
        backend: Optional[GenerationBackend] = None,
        transcriber: Optional[Transcriber] = None,
    ):
        self.personalities: tuple[Personality, ...] = tuple(personalities)
        self._backend = backend
        self._transcriber = transcriber

    @property
    def provider(self) -> Optional[str]:
        return self._backend.provider if self._backend else None

    @property
    def is_configured(self) -> bool:
        return self._backend is not None

    def configure(
        self,
        provider: str,
        api_key: str,
        deepgram_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> bool:
        """백엔드 교체. 실패 시 기존 백엔드 유지하고 False."""
        try:
            backend = create_backend(provider, api_key, model=model)
            transcriber = DeepgramTranscriber(deepgram_key) if (deepgram_key or "").strip() else None
        except Exception as e:
            logger.warning(f"AI 설정 실패 (provider={provider}): {e}")
            return False
        self._backend = backend
        self._transcriber = transcriber
        logger.info(
            f"AI 설정 완료: provider={backend.provider}, model={backend.model}, "
            f"deepgram={transcriber is not None}"
        )
        return True

    async def transcribe(self, audio: bytes) -> str:
        """음성 → 텍스트. 짧은 입력/에러는 빈 문자열."""
        size = len(audio or b"")
        if size < MIN_AUDIO_BYTES:
            logger.debug(f"음성 데이터가 너무 작음 ({size} bytes), 전사 생략")
            return ""
        transcriber = self._transcriber or self._backend
        if transcriber is None:
            logger.warning("전사 백엔드가 설정되지 않았습니다.")
            return ""
        start = time.perf_counter()
        try:
            text = await transcriber.transcribe(audio)
        except Exception as e:
            logger.warning(f"전사 실패 ({size} bytes): {e}")
            return ""
        text = (text or "").strip()
        elapsed = time.perf_counter() - start
        logger.info(f"전사 완료: {size} bytes -> {len(text)}자, elapsed={elapsed:.3f}s")
        return text

    async def generate_reply(self, system_prompt: str, text: str) -> str:
        """
        가야 한 줄 생성.

        Returns:
            후처리된 답변. 빈 문자열이면 "가야 없음" (브로드캐스트 금지).
            레이트 리밋/인증 문제/미설정은 고정 문구.

        Raises:
            분류되지 않은 백엔드 예외
        """
        backend = self._backend
        if backend is None:
            return NOT_CONFIGURED_REPLY
        content = sanitize_prompt_text(text)
        if not content:
            return ""

        start = time.perf_counter()
        try:
            raw = await backend.generate(system_prompt, content)
        except Exception as e:
            kind = classify_backend_error(e)
            if kind is BackendErrorKind.RATE_LIMITED:
                logger.warning(f"{backend.provider} rate limit: {str(e)[:280]}")
                return RATE_LIMITED_REPLY
            if kind is BackendErrorKind.UNAUTHORIZED:
                logger.error(f"{backend.provider} 인증 실패 (API 키 확인): {str(e)[:280]}")
                return UNAUTHORIZED_REPLY
            logger.exception(f"{backend.provider} 생성 실패: {e}")
            raise

        reply = strip_wrapping_brackets(raw)
        elapsed = time.perf_counter() - start
        logger.info(
            f"가야 생성: provider={backend.provider}, in={len(content)}자, "
            f"out={len(reply)}자, elapsed={elapsed:.3f}s"
        )
        return reply

    async def _reply_as(self, personality: Personality, text: str) -> tuple[Personality, str]:
        try:
            return personality, await self.generate_reply(personality.system_prompt, text)
        except Exception as e:
            logger.warning(f"캐릭터 '{personality.name}' 생성 실패, 제외: {e}")
            return personality, ""

    async def generate_reply_for_all_personalities(self, text: str) -> List[PersonalityReply]:
        """
        캐릭터별 generate_reply를 동시에 호출. 실패/빈 답변은 제외.
        결과는 완료 순서 (설정 순서 보장 안 함).
        """
        if not self.personalities:
            return []
        tasks = [asyncio.ensure_future(self._reply_as(p, text)) for p in self.personalities]
        results: List[PersonalityReply] = []
        for done in asyncio.as_completed(tasks):
            personality, reply = await done
            reply = (reply or "").strip()
            if reply:
                results.append(PersonalityReply(personality=personality, text=reply))
        logger.info(f"멀티 캐릭터 생성: {len(results)}/{len(self.personalities)}")
        return results
