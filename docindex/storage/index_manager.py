"""
Index manager: lifecycle of backend indexes for registered record types.

The logical index name is an alias pointing at a physical index named
``<name>-<hex>``. Replacing an index builds the new physical index, waits
until it has finished indexing, then repoints the alias, so readers never
see a half-built or empty index.
"""

import asyncio
import json
import uuid
from typing import Any, Dict, Optional

from ..config import settings
from ..errors import DocIndexError, IndexAlreadyExists, IndexBuildTimeout, IndexNotFound
from ..indexing.schema import describe
from ..models.index import IndexDefinition, IndexHandle
from ..models.schema import RecordType, SchemaRegistry
from ..utils.logging import LoggerMixin
from ..utils.metrics import monitor_function
from ..utils.retry import RetryPolicy
from .base import BaseBackend


class IndexManager(LoggerMixin):
    """Creates, replaces, drops and rebuilds indexes on a backend."""

    def __init__(self, backend: BaseBackend, registry: Optional[SchemaRegistry] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 ready_timeout: Optional[float] = None,
                 poll_interval: Optional[float] = None):
        self.backend = backend
        self.registry = registry
        self.retry_policy = retry_policy or RetryPolicy()
        self.ready_timeout = settings.indexing.index_ready_timeout if ready_timeout is None else ready_timeout
        self.poll_interval = settings.indexing.index_poll_interval if poll_interval is None else poll_interval
        self.meta_prefix = settings.indexing.meta_key_prefix

    def meta_key(self, name: str) -> str:
        """Metadata key holding the stored definition of an index."""
        return f"{self.meta_prefix}:{name}"

    @staticmethod
    def physical_name(name: str) -> str:
        """Fresh physical index name for a logical name."""
        return f"{name}-{uuid.uuid4().hex[:12]}"

    async def _index_info(self, name: str) -> Optional[Dict[str, Any]]:
        return await self.retry_policy.execute(lambda: self.backend.index_info(name), operation="index_info")

    async def _load_meta(self, name: str) -> Optional[Dict[str, Any]]:
        raw = await self.retry_policy.execute(lambda: self.backend.get_meta(self.meta_key(name)),
                                              operation="get_meta")
        if raw is None:
            return None
        return json.loads(raw)

    async def index_exists(self, name: str) -> bool:
        """Check whether a logical index exists."""
        return await self._index_info(name) is not None

    async def get_definition(self, name: str) -> Optional[IndexDefinition]:
        """Get the stored definition of an index, or None."""
        meta = await self._load_meta(name)
        if meta is None:
            return None
        return IndexDefinition.from_dict(meta["definition"])

    @monitor_function("index_manager", "create_index", "index")
    async def create_index(self, definition: IndexDefinition, replace: bool = False) -> IndexHandle:
        """
        Create the index for a definition.

        Args:
            definition: Index definition to build
            replace: Swap out an existing index instead of failing

        Returns:
            Handle naming the live physical index

        Raises:
            IndexAlreadyExists: If the index exists and replace is False
            IndexBuildTimeout: If the new index does not finish indexing in time
        """
        name = definition.name
        current = await self._index_info(name)
        if current is not None and not replace:
            raise IndexAlreadyExists(name, operation="create_index", record_type=definition.record_type)

        physical = self.physical_name(name)
        await self.backend.create_index(physical, definition)

        previous: Optional[str] = None
        try:
            await self.wait_until_ready(physical)
            if current is None:
                await self.backend.alias_add(name, physical)
            elif current["index_name"] == name:
                # Index created without an alias; the swap cannot be atomic
                previous = name
                self.logger.warning("Replacing non-aliased index", index_name=name)
                await self.backend.drop_index(name, delete_documents=False)
                await self.backend.alias_add(name, physical)
            else:
                previous = current["index_name"]
                await self.backend.alias_update(name, physical)
        except (DocIndexError, asyncio.CancelledError) as e:
            self.log_error(e, {"index_name": name, "physical_name": physical})
            await self._discard(physical)
            raise

        await self.backend.set_meta(self.meta_key(name), json.dumps({
            "definition": definition.to_dict(),
            "fingerprint": definition.fingerprint,
            "physical_name": physical,
        }))

        if previous is not None and previous != name:
            await self.backend.drop_index(previous, delete_documents=False)

        self.logger.info(
            "Index ready",
            index_name=name,
            physical_name=physical,
            replaced=previous,
            fields=len(definition.fields),
        )
        return IndexHandle(
            name=name,
            physical_name=physical,
            fingerprint=definition.fingerprint,
            created=True,
            replaced=previous,
        )

    async def _discard(self, physical: str) -> None:
        """Drop a physical index that never went live."""
        try:
            await self.backend.drop_index(physical, delete_documents=False)
        except DocIndexError as e:
            self.logger.error("Failed to discard unused index", physical_name=physical, error=str(e))

    async def wait_until_ready(self, physical: str) -> None:
        """
        Poll the backend until a physical index reports indexing finished.

        Raises:
            IndexNotFound: If the index disappears while waiting
            IndexBuildTimeout: If indexing does not finish within the timeout
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.ready_timeout
        while True:
            info = await self._index_info(physical)
            if info is None:
                raise IndexNotFound(physical, operation="wait_until_ready")
            if not info.get("indexing"):
                return
            if loop.time() >= deadline:
                raise IndexBuildTimeout(
                    f"Index '{physical}' still indexing after {self.ready_timeout}s",
                    operation="wait_until_ready",
                )
            await asyncio.sleep(self.poll_interval)

    @monitor_function("index_manager", "drop_index", "index")
    async def drop_index(self, name: str, delete_documents: bool = False, missing_ok: bool = False) -> bool:
        """
        Drop a logical index and its stored definition.

        Returns:
            True if an index was dropped, False if it was missing and missing_ok

        Raises:
            IndexNotFound: If the index is missing and missing_ok is False
        """
        current = await self._index_info(name)
        if current is None:
            if missing_ok:
                await self.backend.delete_meta(self.meta_key(name))
                return False
            raise IndexNotFound(name, operation="drop_index")

        physical = current["index_name"]
        if physical != name:
            await self.backend.alias_delete(name)
        await self.backend.drop_index(physical, delete_documents=delete_documents)
        await self.backend.delete_meta(self.meta_key(name))

        self.logger.info("Index dropped", index_name=name, physical_name=physical,
                         delete_documents=delete_documents)
        return True

    async def rebuild_index(self, name: str) -> IndexHandle:
        """
        Rebuild an index from its stored definition.

        Raises:
            IndexNotFound: If no definition is stored for the name
        """
        definition = await self.get_definition(name)
        if definition is None:
            raise IndexNotFound(name, operation="rebuild_index")
        self.logger.info("Rebuilding index", index_name=name)
        return await self.create_index(definition, replace=True)

    async def ensure_index(self, record_type: RecordType) -> IndexHandle:
        """
        Make the backend index match a record type's current schema.

        Creates the index when missing and replaces it when the stored
        fingerprint differs. Schema errors are raised before any backend call.
        """
        definition = IndexDefinition.from_record_type(record_type, describe(record_type, self.registry))

        current = await self._index_info(definition.name)
        if current is None:
            return await self.create_index(definition)

        meta = await self._load_meta(definition.name)
        if meta is not None and meta.get("fingerprint") == definition.fingerprint:
            self.logger.debug("Index up to date", index_name=definition.name)
            return IndexHandle(
                name=definition.name,
                physical_name=current["index_name"],
                fingerprint=definition.fingerprint,
            )

        self.logger.info("Index schema changed", index_name=definition.name,
                         record_type=record_type.name)
        return await self.create_index(definition, replace=True)
