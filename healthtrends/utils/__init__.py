"""Utility modules for healthtrends"""

from .logger import get_logger, setup_logging
from .ttl_cache import TTLCache

__all__ = [
    "get_logger",
    "setup_logging",
    "TTLCache",
]
