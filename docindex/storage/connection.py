"""
Connection provider: one backend shared by index management and collections.
"""

from typing import Dict, Optional

from ..config import settings
from ..errors import SchemaError
from ..models.index import IndexHandle
from ..models.schema import RecordType, SchemaRegistry, default_registry
from ..utils.logging import get_logger
from .base import BaseBackend
from .collection import RedisCollection
from .index_manager import IndexManager
from .memory_client import MemoryBackend
from .redis_client import RedisBackend, RedisConfig


def create_backend(url: Optional[str] = None, backend: Optional[str] = None) -> BaseBackend:
    """
    Create a backend from settings.

    Args:
        url: Redis URL overriding REDIS_URL
        backend: "redis" or "memory", overriding DOCINDEX_BACKEND
    """
    kind = backend or settings.deployment.backend
    if kind == "memory":
        return MemoryBackend()
    if kind == "redis":
        config = RedisConfig(url=url) if url else RedisConfig()
        return RedisBackend(config)
    raise ValueError(f"Unknown backend: {kind}")


class ConnectionProvider:
    """Entry point owning the backend, the index manager and collections."""

    def __init__(self, url: Optional[str] = None, backend: Optional[BaseBackend] = None,
                 registry: Optional[SchemaRegistry] = None):
        self.logger = get_logger(__name__)
        self.backend = backend or create_backend(url)
        self.registry = registry or default_registry
        self.index_manager = IndexManager(self.backend, registry=self.registry)
        self._collections: Dict[str, RedisCollection] = {}

    def _record_type(self, model_or_type) -> RecordType:
        if isinstance(model_or_type, RecordType):
            return model_or_type
        record_type = self.registry.get(model_or_type)
        if record_type is None:
            raise SchemaError(
                f"{getattr(model_or_type, '__name__', model_or_type)} is not a registered record type",
                operation="resolve",
            )
        return record_type

    def collection(self, model_or_type) -> RedisCollection:
        """Get the collection of a record type or registered model class."""
        record_type = self._record_type(model_or_type)
        collection = self._collections.get(record_type.name)
        if collection is None or collection.record_type is not record_type:
            collection = RedisCollection(record_type, self.backend, registry=self.registry)
            self._collections[record_type.name] = collection
        return collection

    async def create_index(self, model_or_type) -> IndexHandle:
        """Create or update the index of a record type."""
        return await self.index_manager.ensure_index(self._record_type(model_or_type))

    async def drop_index(self, model_or_type, delete_documents: bool = False) -> bool:
        """Drop the index of a record type if it exists."""
        record_type = self._record_type(model_or_type)
        return await self.index_manager.drop_index(record_type.index_name,
                                                   delete_documents=delete_documents, missing_ok=True)

    async def flush(self) -> None:
        """Remove every key and index from the database."""
        await self.backend.flush()
        self._collections.clear()

    async def ping(self) -> bool:
        return await self.backend.ping()

    async def close(self) -> None:
        await self.backend.close()
        self.logger.info("Connection closed", backend=self.backend.name)

    async def __aenter__(self) -> "ConnectionProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
