"""
채팅 수집 모듈
플랫폼 채팅을 수집해 Comment로 정규화하는 모듈
"""

from .base_client import ChatClient, build_raw_event
from .chzzk_client import ChzzkSocketIOClient
from .client_factory import ChatClientFactory
from .comment import AI_AUTHOR_NAME, AI_AVATAR_URL, Comment
from .manager import ChatSourceManager
from .normalizer import CommentNormalizer
from .youtube_client import YouTubeLiveChatClient

__all__ = [
    "AI_AUTHOR_NAME",
    "AI_AVATAR_URL",
    "ChatClient",
    "ChatClientFactory",
    "ChatSourceManager",
    "ChzzkSocketIOClient",
    "Comment",
    "CommentNormalizer",
    "YouTubeLiveChatClient",
    "build_raw_event",
]
