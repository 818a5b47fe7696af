"""
채팅 클라이언트 팩토리
플랫폼별 클라이언트를 생성하는 팩토리 패턴
"""

from typing import Dict

from .base_client import ChatClient
from .chzzk_client import ChzzkSocketIOClient
from .youtube_client import YouTubeLiveChatClient


class ChatClientFactory:
    """채팅 클라이언트 팩토리 클래스"""

    _platforms: Dict[str, type[ChatClient]] = {
        "chzzk": ChzzkSocketIOClient,
        "youtube": YouTubeLiveChatClient,
    }

    @classmethod
    def create(
        cls,
        platform: str,
        source_id: str,
        **kwargs
    ) -> ChatClient:
        """
        플랫폼별 채팅 클라이언트 생성

        Args:
            platform: 플랫폼 이름 ("chzzk", "youtube")
            source_id: 채널 ID / 영상 ID
            **kwargs: 플랫폼별 추가 설정 (access_token, api_key, on_event 등)

        Raises:
            ValueError: 지원하지 않는 플랫폼인 경우
        """
        key = (platform or "").strip().lower()
        if key not in cls._platforms:
            supported = ", ".join(cls._platforms.keys())
            raise ValueError(
                f"지원하지 않는 플랫폼: {platform}. "
                f"지원 플랫폼: {supported}"
            )
        return cls._platforms[key](source_id=source_id, **kwargs)

    @classmethod
    def register_platform(cls, platform: str, client_class: type[ChatClient]):
        """새로운 플랫폼 등록 (런타임에 플랫폼 추가 가능)"""
        if not issubclass(client_class, ChatClient):
            raise TypeError(
                f"client_class는 ChatClient를 상속해야 합니다. "
                f"현재: {client_class.__mro__}"
            )
        cls._platforms[platform] = client_class

    @classmethod
    def get_supported_platforms(cls) -> list[str]:
        """지원하는 플랫폼 목록 반환"""
        return list(cls._platforms.keys())
