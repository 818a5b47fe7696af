"""유틸리티 모듈"""
from .encoding_repair import repair
from .logging_config import setup_logging

__all__ = ["repair", "setup_logging"]
