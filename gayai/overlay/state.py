"""컨트롤 화면용 최근 코멘트 버퍼. 시청자 채팅 / 가야 답변을 도착 순서대로 보관."""

import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Tuple

from gayai.chat.comment import Comment

MAX_RECENT_COMMENTS = 50
# 표시 수명 (지나면 /api/state 에서 빠짐)
COMMENT_LIFETIME_SEC = 600.0


class RecentComments:
    """Hub 리스너로 등록되는 bounded 버퍼 (오래된 것부터 밀려남)."""

    def __init__(
        self,
        max_items: int = MAX_RECENT_COMMENTS,
        lifetime_sec: float = COMMENT_LIFETIME_SEC,
        clock: Callable[[], float] = time.time,
    ):
        self.lifetime_sec = lifetime_sec
        self._clock = clock
        self._items: Deque[Tuple[float, Comment]] = deque(maxlen=max_items)

    def __call__(self, comment: Comment) -> None:
        self.add(comment)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, comment: Comment) -> None:
        self._items.append((self._clock(), comment))

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """수명이 남은 코멘트를 viewer / gaya 컬럼으로 나눠 반환."""
        cutoff = self._clock() - self.lifetime_sec
        while self._items and self._items[0][0] < cutoff:
            self._items.popleft()
        viewer = [c.to_payload() for _, c in self._items if not c.is_reply]
        gaya = [c.to_payload() for _, c in self._items if c.is_reply]
        return {"viewer_messages": viewer, "gaya_messages": gaya}
