"""
생성/전사 백엔드 구현. provider 태그로 생성 시점에 하나를 고른다.

- openai: OpenAI Chat Completions + Whisper
- groq:   OpenAI 호환 엔드포인트 (Groq)
- gemini: google-genai
- Deepgram: 전사 전용 (REST, httpx)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from google import genai
from google.genai import types as genai_types
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEEPGRAM_LISTEN_URL = "https://api.deepgram.com/v1/listen"

DEFAULT_LANGUAGE = "ja"
DEFAULT_AUDIO_MIME = "audio/webm"

TRANSCRIBE_PROMPT = "この音声を文字起こししてください。話された内容のテキストだけを出力してください。"


def _first_choice_content(response: Any, where: str) -> str:
    """OpenAI 응답 첫 message.content를 안전하게 문자열로 반환."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        logger.warning(f"{where}: response.choices가 비어 있습니다.")
        return ""
    msg = getattr(choices[0], "message", None)
    if msg is None:
        logger.warning(f"{where}: response.choices[0].message가 없습니다.")
        return ""
    content = getattr(msg, "content", "")
    if content is None:
        return ""
    return str(content)


class Transcriber(ABC):
    """음성 → 텍스트"""

    @abstractmethod
    async def transcribe(self, audio: bytes) -> str:
        pass


class GenerationBackend(Transcriber):
    """텍스트 생성 백엔드 공통 인터페이스 (전사 포함)"""

    provider: str = ""
    default_model: str = ""

    def __init__(self, api_key: str, model: Optional[str] = None, max_tokens: int = 256):
        self.api_key = (api_key or "").strip()
        if not self.api_key:
            raise ValueError(f"{self.provider} API 키가 비어 있습니다.")
        self.model = (model or "").strip() or self.default_model
        self.max_tokens = max_tokens

    @abstractmethod
    async def generate(self, system_prompt: str, text: str) -> str:
        pass


class OpenAIBackend(GenerationBackend):
    provider = "openai"
    default_model = "gpt-4o-mini"
    transcribe_model = "whisper-1"
    base_url: Optional[str] = None

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        max_tokens: int = 256,
        language: str = DEFAULT_LANGUAGE,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(api_key, model, max_tokens)
        self.language = language
        self._client = client or AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        logger.info(f"{self.provider} 백엔드 초기화: model={self.model}")

    async def generate(self, system_prompt: str, text: str) -> str:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": text},
            ],
            max_tokens=self.max_tokens,
        )
        return _first_choice_content(response, f"{self.provider}.generate")

    async def transcribe(self, audio: bytes) -> str:
        result = await self._client.audio.transcriptions.create(
            model=self.transcribe_model,
            file=("speech.webm", audio),
            language=self.language,
        )
        return (getattr(result, "text", "") or "").strip()


class GroqBackend(OpenAIBackend):
    provider = "groq"
    default_model = "openai/gpt-oss-120b"
    transcribe_model = "whisper-large-v3-turbo"
    base_url = GROQ_BASE_URL


class GeminiBackend(GenerationBackend):
    provider = "gemini"
    default_model = "gemini-2.5-flash"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        max_tokens: int = 256,
        audio_mime_type: str = DEFAULT_AUDIO_MIME,
        client: Optional[genai.Client] = None,
    ):
        super().__init__(api_key, model, max_tokens)
        self.audio_mime_type = audio_mime_type
        self._client = client or genai.Client(api_key=self.api_key)
        logger.info(f"gemini 백엔드 초기화: model={self.model}")

    async def generate(self, system_prompt: str, text: str) -> str:
        response = await self._client.aio.models.generate_content(
            model=self.model,
            contents=text,
            config=genai_types.GenerateContentConfig(system_instruction=system_prompt),
        )
        return getattr(response, "text", None) or ""

    async def transcribe(self, audio: bytes) -> str:
        response = await self._client.aio.models.generate_content(
            model=self.model,
            contents=[
                genai_types.Part.from_bytes(data=audio, mime_type=self.audio_mime_type),
                TRANSCRIBE_PROMPT,
            ],
        )
        return (getattr(response, "text", None) or "").strip()


class DeepgramTranscriber(Transcriber):
    """Deepgram pre-recorded API. 키가 있으면 백엔드 전사 대신 사용."""

    def __init__(
        self,
        api_key: str,
        model: str = "nova-2",
        language: str = DEFAULT_LANGUAGE,
        mime_type: str = DEFAULT_AUDIO_MIME,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = (api_key or "").strip()
        if not self.api_key:
            raise ValueError("Deepgram API 키가 비어 있습니다.")
        self.model = model
        self.language = language
        self.mime_type = mime_type
        self.timeout = timeout
        self._transport = transport

    async def transcribe(self, audio: bytes) -> str:
        params = {"model": self.model, "language": self.language, "smart_format": "true"}
        headers = {"Authorization": f"Token {self.api_key}", "Content-Type": self.mime_type}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(DEEPGRAM_LISTEN_URL, params=params, headers=headers, content=audio)
            response.raise_for_status()
            data = response.json()
        channels = (data.get("results") or {}).get("channels") or []
        if not channels:
            return ""
        alternatives = channels[0].get("alternatives") or []
        if not alternatives:
            return ""
        return (alternatives[0].get("transcript") or "").strip()


_BACKENDS: Dict[str, type[GenerationBackend]] = {
    "openai": OpenAIBackend,
    "groq": GroqBackend,
    "gemini": GeminiBackend,
}


def supported_providers() -> list[str]:
    return list(_BACKENDS.keys())


def create_backend(provider: str, api_key: str, model: Optional[str] = None, **kwargs) -> GenerationBackend:
    """
    provider 태그로 백엔드 생성.

    Raises:
        ValueError: 지원하지 않는 provider 또는 빈 API 키
    """
    key = (provider or "").strip().lower()
    if key not in _BACKENDS:
        raise ValueError(
            f"지원하지 않는 provider: {provider}. 지원: {', '.join(_BACKENDS)}"
        )
    return _BACKENDS[key](api_key=api_key, model=model, **kwargs)
