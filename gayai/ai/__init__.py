# AI 생성 모듈 (전사 + 가야 생성)

from .backends import GenerationBackend, create_backend, supported_providers
from .errors import BackendErrorKind, classify_backend_error
from .models import DEFAULT_SYSTEM_PROMPT, Personality, PersonalityReply
from .provider import GenerationProvider
from .reply_policy import ReplyDecision, ReplyGate, evaluate_reply_decision
from .text import strip_wrapping_brackets

__all__ = [
    "BackendErrorKind",
    "DEFAULT_SYSTEM_PROMPT",
    "GenerationBackend",
    "GenerationProvider",
    "Personality",
    "PersonalityReply",
    "ReplyDecision",
    "ReplyGate",
    "classify_backend_error",
    "create_backend",
    "evaluate_reply_decision",
    "strip_wrapping_brackets",
    "supported_providers",
]
