"""
가야 생성 여부 판단 (쿨다운 + 확률).
판단 자체는 순수 함수, 마지막 답변 시각은 ReplyGate가 보관.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, Literal, Optional

logger = logging.getLogger(__name__)

DenyReason = Literal["cooldown", "random"]


@dataclass(frozen=True)
class ReplyDecision:
    allow: bool
    reason: Optional[DenyReason] = None

    def to_dict(self) -> dict:
        if self.allow:
            return {"allow": True}
        return {"allow": False, "reason": self.reason}


ALLOW = ReplyDecision(allow=True)


def evaluate_reply_decision(
    now: float,
    last_reply_time: float,
    cooldown_ms: float,
    reply_chance: float,
    random_value: float,
) -> ReplyDecision:
    """
    쿨다운을 먼저 보고, 그 다음 확률 판정.
    쿨다운 중이면 random_value는 보지 않는다.
    """
    if now - last_reply_time < cooldown_ms:
        return ReplyDecision(allow=False, reason="cooldown")
    if random_value > reply_chance:
        return ReplyDecision(allow=False, reason="random")
    return ALLOW


class ReplyGate:
    """
    last_reply_time 단일 보관소.
    판단과 갱신을 await 없이 한 번에 처리하므로 동시에 두 트리거가 통과하지 못함.
    """

    def __init__(
        self,
        cooldown_ms: float,
        reply_chance: float,
        rng: Optional[Callable[[], float]] = None,
    ):
        self.cooldown_ms = max(0.0, float(cooldown_ms))
        self.reply_chance = min(1.0, max(0.0, float(reply_chance)))
        self._rng = rng or random.random
        # 첫 답변은 쿨다운 없이 허용
        self.last_reply_time: float = float("-inf")

    def try_acquire(self, now: float, random_value: Optional[float] = None) -> ReplyDecision:
        """허용되면 now를 마지막 답변 시각으로 기록."""
        value = self._rng() if random_value is None else random_value
        decision = evaluate_reply_decision(
            now=now,
            last_reply_time=self.last_reply_time,
            cooldown_ms=self.cooldown_ms,
            reply_chance=self.reply_chance,
            random_value=value,
        )
        if decision.allow:
            self.last_reply_time = now
        else:
            logger.debug(f"가야 생략: reason={decision.reason}")
        return decision
