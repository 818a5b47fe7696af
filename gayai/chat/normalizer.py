"""
채팅 소스 원시 이벤트 → Comment 정규화
"""

import logging
import math
from datetime import datetime
from typing import Any, Optional

from gayai.utils.encoding_repair import repair

from .comment import Comment, now_ms

logger = logging.getLogger(__name__)

# text가 없는 메시지 파트(이모지 등)에서 대신 쓸 필드 순서
_ALT_TEXT_FIELDS = ("emojiText", "alt")


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return str(value)
    except Exception:
        return ""


def _part_text(part: Any) -> str:
    """메시지 파트 하나를 문자열로. text 없으면 이모지 대체 텍스트 사용."""
    if isinstance(part, str):
        return part
    if not isinstance(part, dict):
        return ""
    text = part.get("text")
    if isinstance(text, str):
        return text
    for key in _ALT_TEXT_FIELDS:
        alt = part.get(key)
        if isinstance(alt, str) and alt:
            return alt
    shortcuts = part.get("shortcuts")
    if isinstance(shortcuts, list) and shortcuts and isinstance(shortcuts[0], str):
        return shortcuts[0]
    return ""


def _to_epoch_ms(value: Any) -> int:
    """ms/초 숫자, datetime, ISO 8601 문자열 허용. 실패 시 현재 시각."""
    if isinstance(value, str) and "T" in value:
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return now_ms()
    if isinstance(value, datetime):
        try:
            ms = int(value.timestamp() * 1000)
        except (OverflowError, OSError, ValueError):
            return now_ms()
        return ms if ms > 0 else now_ms()
    try:
        n = float(value)
    except (TypeError, ValueError):
        return now_ms()
    # nan / inf / 1e400 은 int 변환 불가
    if not math.isfinite(n) or n <= 0:
        return now_ms()
    return int(n if n > 1e12 else n * 1000)


class CommentNormalizer:
    """
    채팅 소스 이벤트를 Comment 하나로 변환.

    입력 형식 (플랫폼 클라이언트가 맞춰서 넘김):
        {"id": str, "author": {"name": str, "thumbnail": {"url": str}},
         "message": [{"text": str} | {"emojiText": str}, ...], "timestamp": ms}

    필드 하나가 깨져도 빈 문자열로 대체하고 Comment 생성은 계속한다.
    """

    def normalize(self, raw: dict) -> Comment:
        if not isinstance(raw, dict):
            logger.warning(f"정규화 입력이 dict가 아님: {type(raw)!r}")
            raw = {}

        author = raw.get("author")
        if not isinstance(author, dict):
            author = {}
        author_name = _as_str(author.get("name"))

        parts = raw.get("message")
        if isinstance(parts, str):
            parts = [{"text": parts}]
        elif not isinstance(parts, list):
            parts = []
        text = "".join(_part_text(p) for p in parts)

        return Comment.viewer(
            author_name=repair(author_name),
            text=repair(text),
            comment_id=_as_str(raw.get("id")) or None,
            avatar_url=self._avatar_url(author),
            timestamp=_to_epoch_ms(raw.get("timestamp")),
        )

    @staticmethod
    def _avatar_url(author: dict) -> Optional[str]:
        thumb = author.get("thumbnail")
        if isinstance(thumb, dict):
            url = thumb.get("url")
        else:
            url = thumb
        return url if isinstance(url, str) and url else None
