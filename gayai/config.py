"""
설정 로드.

- .env → 환경 변수 → Settings
- config/character.txt: 기본 시스템 프롬프트 (없으면 내장 프롬프트)
- config/personalities.json: 멀티 캐릭터 목록 (없으면 기본 캐릭터 1개)
- server-config.json: 컴패니언 서버 URL (없으면 미설정)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from dotenv import load_dotenv

from gayai.ai.models import DEFAULT_SYSTEM_PROMPT, Personality
from gayai.chat.comment import AI_AUTHOR_NAME, AI_AVATAR_URL

logger = logging.getLogger(__name__)

MAX_CHARACTER_PROMPT_CHARS = 12000


def project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, "") or default)
    except ValueError:
        logger.warning(f"{name} 값이 숫자가 아닙니다. 기본값 {default} 사용")
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, "") or default)
    except ValueError:
        logger.warning(f"{name} 값이 정수가 아닙니다. 기본값 {default} 사용")
        return default


@dataclass
class Settings:
    ai_provider: str = "gemini"
    ai_model: str = ""
    openai_api_key: str = ""
    gemini_api_key: str = ""
    groq_api_key: str = ""
    deepgram_api_key: str = ""

    overlay_host: str = "127.0.0.1"
    overlay_port: int = 3001
    overlay_public_host: str = "localhost"

    reply_cooldown_ms: float = 5000.0
    reply_chance: float = 1.0
    reply_to_chat: bool = False
    multi_personality: bool = False

    monitor_interval_sec: float = 30.0
    config_dir: Path = field(default_factory=lambda: project_root() / "config")

    chzzk_access_token: str = ""
    youtube_api_key: str = ""

    @property
    def server_config_path(self) -> Path:
        return self.config_dir / "server-config.json"

    @property
    def overlay_url(self) -> str:
        return f"http://{self.overlay_public_host}:{self.overlay_port}/"

    def api_key_for(self, provider: str) -> str:
        return {
            "openai": self.openai_api_key,
            "gemini": self.gemini_api_key,
            "groq": self.groq_api_key,
        }.get((provider or "").strip().lower(), "")


def load_settings(env_file: Optional[Union[Path, str]] = None) -> Settings:
    """.env(있으면) 로드 후 환경 변수로 Settings 구성."""
    load_dotenv(env_file or (project_root() / ".env"))
    config_dir = os.getenv("CONFIG_DIR", "").strip()
    return Settings(
        ai_provider=(os.getenv("AI_PROVIDER") or "gemini").strip().lower(),
        ai_model=(os.getenv("AI_MODEL") or "").strip(),
        openai_api_key=(os.getenv("OPENAI_API_KEY") or "").strip(),
        gemini_api_key=(os.getenv("GEMINI_API_KEY") or "").strip(),
        groq_api_key=(os.getenv("GROQ_API_KEY") or "").strip(),
        deepgram_api_key=(os.getenv("DEEPGRAM_API_KEY") or "").strip(),
        overlay_host=(os.getenv("OVERLAY_HOST") or "127.0.0.1").strip(),
        overlay_port=_env_int("OVERLAY_PORT", 3001),
        overlay_public_host=(os.getenv("OVERLAY_PUBLIC_HOST") or "localhost").strip(),
        reply_cooldown_ms=_env_float("REPLY_COOLDOWN_MS", 5000.0),
        reply_chance=_env_float("REPLY_CHANCE", 1.0),
        reply_to_chat=_env_bool("REPLY_TO_CHAT", False),
        multi_personality=_env_bool("MULTI_PERSONALITY", False),
        monitor_interval_sec=_env_float("MONITOR_INTERVAL_SEC", 30.0),
        config_dir=Path(config_dir) if config_dir else project_root() / "config",
        chzzk_access_token=(os.getenv("CHZZK_ACCESS_TOKEN") or "").strip(),
        youtube_api_key=(os.getenv("YOUTUBE_API_KEY") or "").strip(),
    )


def load_character_prompt(character_path: Path) -> str:
    """character.txt 내용. 없거나 읽기 실패 시 기본 프롬프트."""
    if not character_path.exists():
        return DEFAULT_SYSTEM_PROMPT
    try:
        text = character_path.read_text(encoding="utf-8").replace("\0", "").strip()
    except Exception as e:
        logger.warning(f"캐릭터 파일 로드 실패 {character_path}: {e}")
        return DEFAULT_SYSTEM_PROMPT
    if len(text) > MAX_CHARACTER_PROMPT_CHARS:
        logger.warning(
            f"캐릭터 프롬프트가 너무 깁니다({len(text)}자). "
            f"{MAX_CHARACTER_PROMPT_CHARS}자로 잘라서 사용합니다."
        )
        text = text[:MAX_CHARACTER_PROMPT_CHARS]
    return text or DEFAULT_SYSTEM_PROMPT


def load_personalities(path: Path, default_prompt: str = DEFAULT_SYSTEM_PROMPT) -> List[Personality]:
    """
    personalities.json 로드.
    형식: [{"name": "...", "system_prompt": "...", "avatar_url": "..."}, ...]
    파일이 없거나 비어 있으면 기본 캐릭터 1개.
    """
    default = [Personality(name=AI_AUTHOR_NAME, system_prompt=default_prompt, avatar_url=AI_AVATAR_URL)]
    if not path.exists():
        return default
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"캐릭터 목록 로드 실패 {path}: {e}")
        return default
    if not isinstance(data, list):
        logger.warning(f"캐릭터 목록 형식 오류 (list 아님): {path}")
        return default

    out: List[Personality] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        prompt = str(item.get("system_prompt") or "").strip()
        if not name or not prompt:
            logger.warning(f"이름/프롬프트가 없는 캐릭터 항목 무시: {item!r}")
            continue
        avatar = item.get("avatar_url")
        out.append(Personality(name=name, system_prompt=prompt, avatar_url=avatar or None))
    return out or default


class ServerConfigStore:
    """컴패니언 서버 URL 저장소 (작은 JSON 파일)."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        """저장된 URL. 파일이 없으면 None (미설정)."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"서버 설정 로드 실패 {self.path}: {e}")
            return None
        url = data.get("serverUrl") if isinstance(data, dict) else None
        return url if isinstance(url, str) and url else None

    def save(self, server_url: Optional[str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps({"serverUrl": server_url}, ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            logger.error(f"서버 설정 저장 실패 {self.path}: {e}")
