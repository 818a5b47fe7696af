"""
AI 모듈 데이터 모델
"""

from dataclasses import dataclass
from typing import Optional


DEFAULT_SYSTEM_PROMPT = (
    "あなたは配信者の友人です。短く、面白おかしく相槌やツッコミを入れてください。"
    "返答は一言か一文だけ。括弧や引用符で囲まないこと。"
)


@dataclass(frozen=True)
class Personality:
    """가야 캐릭터 하나 (이름 + 시스템 프롬프트). 프로세스 시작 시 고정."""
    name: str
    system_prompt: str
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class PersonalityReply:
    """멀티 캐릭터 생성 결과. 순서가 아니라 personality 필드로 식별."""
    personality: Personality
    text: str
