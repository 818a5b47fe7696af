"""
생성 백엔드 예외 분류.
백엔드마다 에러 모양이 제각각이라 상태 코드 + 메시지 문자열로 판단한다.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class BackendErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"


_RATE_LIMIT_HINTS = (
    "429",
    "quota",
    "rate limit",
    "rate_limit",
    "ratelimit",
    "resource_exhausted",
    "resource exhausted",
    "too many requests",
)

_UNAUTHORIZED_HINTS = (
    "api key not valid",
    "api_key_invalid",
    "invalid api key",
    "incorrect api key",
    "leaked",
    "permission_denied",
    "unauthorized",
    "forbidden",
)


def _status_code(err: BaseException) -> Optional[int]:
    """openai(status_code), google-genai(code), httpx(response.status_code) 순으로 탐색."""
    for attr in ("status_code", "code", "status"):
        value = getattr(err, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(err, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def classify_backend_error(err: BaseException) -> BackendErrorKind:
    """429/쿼터 → RATE_LIMITED, 401/403/키 문제 → UNAUTHORIZED, 나머지 UNKNOWN."""
    status = _status_code(err)
    if status == 429:
        return BackendErrorKind.RATE_LIMITED
    if status in (401, 403):
        return BackendErrorKind.UNAUTHORIZED

    message = str(err or "").lower()
    if any(hint in message for hint in _RATE_LIMIT_HINTS):
        return BackendErrorKind.RATE_LIMITED
    if any(hint in message for hint in _UNAUTHORIZED_HINTS):
        return BackendErrorKind.UNAUTHORIZED
    return BackendErrorKind.UNKNOWN
