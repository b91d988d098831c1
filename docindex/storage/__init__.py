"""
Storage backends, index lifecycle and collections.
"""

from .base import BaseBackend, SearchPage
from .redis_client import RedisBackend, RedisConfig
from .memory_client import MemoryBackend
from .index_manager import IndexManager
from .collection import QueryResult, RedisCollection
from .connection import ConnectionProvider, create_backend

__all__ = [
    "BaseBackend",
    "SearchPage",
    "RedisBackend",
    "RedisConfig",
    "MemoryBackend",
    "IndexManager",
    "QueryResult",
    "RedisCollection",
    "ConnectionProvider",
    "create_backend",
]
