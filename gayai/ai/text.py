"""
프롬프트 입력 정제 / 모델 출력 후처리.
"""

from __future__ import annotations

import re
from typing import Any

# 모델이 답변 전체를 감싸서 돌려주는 괄호·따옴표 쌍
WRAPPING_PAIRS: dict[str, str] = {
    '"': '"',
    "'": "'",
    "“": "”",
    "「": "」",
    "『": "』",
    "《": "》",
    "〈": "〉",
    "【": "】",
}


def sanitize_prompt_text(value: Any, max_len: int = 1000) -> str:
    """프롬프트에 넣기 전 사용자 입력 최소 정제."""
    s = str(value or "")
    s = s.replace("\r", " ").replace("\0", " ")
    s = re.sub(r"[\x00-\x08\x0b-\x1f\x7f]", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    if len(s) > max_len:
        s = s[:max_len]
    return s


def _wraps_whole(s: str, opening: str, closing: str) -> bool:
    """s[0]의 짝이 정확히 마지막 문자인지."""
    inner = s[1:-1]
    if opening == closing:
        return opening not in inner
    depth = 0
    last = len(s) - 1
    for i, ch in enumerate(s):
        if ch == opening:
            depth += 1
        elif ch == closing:
            depth -= 1
            if depth == 0 and i != last:
                return False
    return depth == 0


def strip_wrapping_brackets(text: str) -> str:
    """
    답변 전체를 감싼 바깥 괄호 한 쌍만 제거하고 공백 정리.
    '「テスト」' -> 'テスト', '「"テスト"」' -> '"テスト"', '「テスト' -> 그대로.
    감싸고 있지 않은 텍스트는 변화 없음.
    """
    s = (text or "").strip()
    if len(s) < 2:
        return s
    closing = WRAPPING_PAIRS.get(s[0])
    if closing is None or s[-1] != closing:
        return s
    if not _wraps_whole(s, s[0], closing):
        return s
    return s[1:-1].strip()
