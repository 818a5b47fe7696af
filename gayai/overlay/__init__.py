"""
방송 오버레이: 시청자 채팅·가야를 OBS 브라우저 소스로 실시간 배포.

- BroadcastHub: 모든 Comment의 단일 배포 지점 (Socket.IO 'new-comment')
- OBS에서 브라우저 소스 URL을 http://127.0.0.1:3001/ 로 설정.
"""

from .hub import COMMENT_EVENT, BroadcastHub
from .state import RecentComments

__all__ = ["BroadcastHub", "COMMENT_EVENT", "RecentComments"]
