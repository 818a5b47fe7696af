"""
컴패니언 백엔드 연결 모니터
"""

from .connection_monitor import (
    ConnectionMonitor,
    ConnectionStatus,
    GayaSettings,
    validate_server_url,
)

__all__ = ["ConnectionMonitor", "ConnectionStatus", "GayaSettings", "validate_server_url"]
