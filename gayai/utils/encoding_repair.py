"""
UTF-8 문자화け(mojibake) 복구.

채팅 소스가 가끔 UTF-8 바이트를 Latin-1로 잘못 해석해서 넘겨줌 (예: 'ã\\x81\\x93ã\\x82\\x93').
정상 텍스트는 절대 건드리지 않는 것이 우선이고, 복구는 확실할 때만 채택한다.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

# 가나, CJK 기호, 한자, 전각/반각 폼
_CJK_RE = re.compile(r"[\u3000-\u303f\u3040-\u30ff\u3400-\u9fff\uff00-\uffef]")

# UTF-8 → Latin-1 오해석 시 자주 나오는 문자
_LATIN1_MARKERS_RE = re.compile(r"[ÃÂãâêîôû]")

# Shift_JIS 계열로 잘못 읽혔을 때 나오는 깨진 문자들 (縺, 繧, 반각 가타카나 등)
_GARBLED_MARKERS_RE = re.compile(r"[縺繧繝・｡｢｣､･\uff66-\uff9d]")

_REPLACEMENT_CHAR = "\ufffd"


def count_cjk(text: str) -> int:
    """CJK 계열 문자 수."""
    return len(_CJK_RE.findall(text or ""))


def _has_markers(text: str) -> bool:
    return bool(_LATIN1_MARKERS_RE.search(text) or _GARBLED_MARKERS_RE.search(text))


def _to_single_byte(text: str) -> bytes | None:
    """문자열을 1바이트 인코딩으로 되돌림. Latin-1 우선, 안 되면 cp1252 (“ ” 등)."""
    for encoding in ("latin-1", "cp1252"):
        try:
            return text.encode(encoding)
        except UnicodeEncodeError:
            continue
    return None


def repair(text: str) -> str:
    """
    Latin-1로 잘못 디코딩된 UTF-8 텍스트를 복구. 확신이 없으면 원문 그대로 반환.

    1) ASCII만 있으면 그대로
    2) CJK 문자가 이미 있으면 그대로 (재해석하면 오히려 깨짐)
    3) 문자화け 표식 문자가 없으면 그대로
    4) 역변환 후 CJK가 늘고, U+FFFD 없고, 표식이 사라졌을 때만 채택
    """
    if not text or text.isascii():
        return text
    if count_cjk(text) > 0:
        return text
    if not _has_markers(text):
        return text

    raw = _to_single_byte(text)
    if raw is None:
        return text
    decoded = raw.decode("utf-8", errors="replace")

    if (
        count_cjk(decoded) > count_cjk(text)
        and _REPLACEMENT_CHAR not in decoded
        and not _has_markers(decoded)
    ):
        logger.debug(f"문자화け 복구: {text[:40]!r} -> {decoded[:40]!r}")
        return decoded
    return text
