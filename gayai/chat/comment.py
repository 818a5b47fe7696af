"""
오버레이로 배포되는 공통 코멘트 모델.
시청자 채팅과 AI 가야(ガヤ) 모두 이 형태로 Broadcast Hub에 넘어간다.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Any, Optional

# AI 답변 기본 표시 이름/아이콘
AI_AUTHOR_NAME = "GAYAIちゃん"
AI_AVATAR_URL = "https://api.dicebear.com/7.x/bottts/svg?seed=GAYAI"


def now_ms() -> int:
    """현재 시각 (epoch ms)."""
    return int(time.time() * 1000)


def make_comment_id(kind: str, timestamp: Optional[int] = None) -> str:
    """'<kind>-<epoch-millis>' 형식 ID."""
    return f"{kind}-{timestamp if timestamp is not None else now_ms()}"


@dataclass(frozen=True)
class Comment:
    """브로드캐스트 단위. is_reply와 text는 생성 시 함께 정해지고 이후 바뀌지 않음."""
    id: str
    author_name: str
    text: str
    is_reply: bool
    timestamp: int
    avatar_url: Optional[str] = None

    @classmethod
    def viewer(
        cls,
        author_name: str,
        text: str,
        comment_id: Optional[str] = None,
        avatar_url: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> "Comment":
        """채팅 소스에서 복사한 코멘트 (is_reply=False)."""
        ts = timestamp if timestamp is not None else now_ms()
        return cls(
            id=comment_id or make_comment_id("comment", ts),
            author_name=author_name,
            text=text,
            is_reply=False,
            timestamp=ts,
            avatar_url=avatar_url,
        )

    @classmethod
    def reply(
        cls,
        text: str,
        author_name: str = AI_AUTHOR_NAME,
        avatar_url: Optional[str] = AI_AVATAR_URL,
        timestamp: Optional[int] = None,
        comment_id: Optional[str] = None,
    ) -> "Comment":
        """생성된 가야 코멘트. text에는 생성 결과만 넣는다 (원문 전사 금지)."""
        ts = timestamp if timestamp is not None else now_ms()
        return cls(
            id=comment_id or make_comment_id("gaya", ts),
            author_name=author_name,
            text=text,
            is_reply=True,
            timestamp=ts,
            avatar_url=avatar_url,
        )

    def with_text(self, author_name: str, text: str) -> "Comment":
        """이름/본문만 바꾼 사본 (문자화け 복구용). is_reply는 유지."""
        return replace(self, author_name=author_name, text=text)

    def to_payload(self) -> dict[str, Any]:
        """오버레이 전송용 JSON. avatarUrl은 있을 때만 포함."""
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.author_name,
            "text": self.text,
            "isGaya": self.is_reply,
            "timestamp": self.timestamp,
        }
        if self.avatar_url:
            payload["avatarUrl"] = self.avatar_url
        return payload
