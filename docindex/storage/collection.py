"""
Collection facade: typed insert and query over one record type.
"""

import uuid
from typing import AsyncIterator, Dict, Any, List, Optional, Sequence

from pydantic import BaseModel

from ..config import settings
from ..errors import MappingError
from ..indexing.mapper import DocumentMapper
from ..indexing.schema import describe
from ..indexing.translator import QueryTranslator
from ..models.query import InsertResult, NativeQuery, QueryNode
from ..models.schema import RecordType, SchemaRegistry
from ..utils.logging import LoggerMixin
from ..utils.metrics import monitor_function
from ..utils.retry import RetryPolicy
from .base import BaseBackend


class QueryResult:
    """
    Lazy, restartable result of a collection query.

    Nothing is sent to the backend until iteration starts; every
    ``async for`` re-issues the query and pages through the results.
    """

    def __init__(self, collection: "RedisCollection", native: NativeQuery,
                 limit: Optional[int] = None, page_size: Optional[int] = None):
        self.collection = collection
        self.native = native
        self.limit = limit
        self.page_size = page_size or settings.indexing.page_size

    def __aiter__(self) -> AsyncIterator[BaseModel]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[BaseModel]:
        offset = 0
        yielded = 0
        while True:
            size = self.page_size if self.limit is None else min(self.page_size, self.limit - yielded)
            if size <= 0:
                return
            page = await self.collection.search_page(self.native, offset, size)
            for key, document in page.hits:
                yield self.collection.to_record(key, document)
                yielded += 1
            offset += size
            if len(page.hits) < size or offset >= page.total:
                return

    async def to_list(self) -> List[BaseModel]:
        """Collect every result."""
        return [record async for record in self]

    async def first(self) -> Optional[BaseModel]:
        """Get the first result, or None."""
        async for record in QueryResult(self.collection, self.native, limit=1):
            return record
        return None

    def __repr__(self) -> str:
        return f"QueryResult(index={self.native.index_name!r}, query={self.native.query!r}, limit={self.limit})"


class RedisCollection(LoggerMixin):
    """Typed records of one record type stored as JSON documents."""

    def __init__(self, record_type: RecordType, backend: BaseBackend,
                 registry: Optional[SchemaRegistry] = None,
                 retry_policy: Optional[RetryPolicy] = None):
        self.record_type = record_type
        self.backend = backend
        self.retry_policy = retry_policy or RetryPolicy()
        descriptors = describe(record_type, registry)
        self.mapper = DocumentMapper(record_type, descriptors=descriptors)
        self.translator = QueryTranslator(record_type, descriptors=descriptors)

    @property
    def prefix(self) -> str:
        return f"{self.record_type.key_prefix}:"

    def key_for(self, record_id: str) -> str:
        """Full key for an id given with or without its prefix."""
        for prefix in self.record_type.prefixes:
            if record_id.startswith(f"{prefix}:"):
                return record_id
        return f"{self.prefix}{record_id}"

    def _suffix(self, key: str) -> str:
        return key.split(":", 1)[1] if ":" in key else key

    def _new_suffix(self, idempotency_key: Optional[str]) -> str:
        if idempotency_key is None:
            return str(uuid.uuid4())
        return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{self.record_type.name}:{idempotency_key}"))

    def to_record(self, key: str, document: Dict[str, Any]) -> BaseModel:
        """Map a stored document back to a record, filling in its id."""
        id_field = self.record_type.id_field
        if id_field is not None and not document.get(id_field.name):
            document = {**document, id_field.name: self._suffix(key)}
        return self.mapper.from_document(document)

    def _document(self, record: BaseModel, suffix: str) -> Dict[str, Any]:
        document = self.mapper.to_document(record)
        id_field = self.record_type.id_field
        if id_field is not None:
            document[id_field.name] = suffix
        return document

    def _assign_id(self, record: BaseModel, suffix: str) -> None:
        id_field = self.record_type.id_field
        if id_field is None:
            return
        model_field = type(record).model_fields.get(id_field.name)
        if record.model_config.get("frozen") or (model_field is not None and model_field.frozen):
            # The key returned by insert carries the id
            return
        setattr(record, id_field.name, suffix)

    @monitor_function("collection", "insert", "record")
    async def insert(self, record: BaseModel, idempotency_key: Optional[str] = None) -> str:
        """
        Store a record under a new id.

        Args:
            record: Instance of the record type's model
            idempotency_key: Derives a stable id and makes the write safe to retry

        Returns:
            The record key, ``<prefix>:<suffix>``

        Raises:
            MappingError: If the record does not fit its record type
            BackendError: If the write fails
        """
        suffix = self._new_suffix(idempotency_key)
        key = f"{self.prefix}{suffix}"
        document = self._document(record, suffix)

        if idempotency_key is None:
            await self.backend.json_set(key, document)
        else:
            await self.retry_policy.execute(lambda: self.backend.json_set(key, document), operation="insert")

        self._assign_id(record, suffix)
        self.logger.debug("Record inserted", record_type=self.record_type.name, key=key)
        return key

    async def insert_many(self, records: Sequence[BaseModel]) -> List[InsertResult]:
        """
        Insert records one by one.

        A failed record does not stop the batch and earlier writes are kept.
        Cancellation still propagates.
        """
        results: List[InsertResult] = []
        for position, record in enumerate(records):
            try:
                key = await self.insert(record)
                results.append(InsertResult(index=position, success=True, id=key))
            except Exception as e:
                self.log_error(e, {"index": position})
                results.append(InsertResult(
                    index=position,
                    success=False,
                    error=str(e),
                    error_type=type(e).__name__,
                ))

        failed = sum(1 for result in results if not result.success)
        self.logger.info("Batch insert finished", record_type=self.record_type.name,
                         total=len(results), failed=failed)
        return results

    async def update(self, record: BaseModel) -> str:
        """Overwrite the stored document of a record that already has an id."""
        id_field = self.record_type.id_field
        record_id = getattr(record, id_field.name, None) if id_field is not None else None
        if not record_id:
            raise MappingError(
                "Record has no id to update",
                operation="update", record_type=self.record_type.name,
                field_path=id_field.name if id_field is not None else None,
            )
        key = self.key_for(record_id)
        document = self._document(record, self._suffix(key))
        await self.retry_policy.execute(lambda: self.backend.json_set(key, document), operation="update")
        return key

    async def get(self, record_id: str) -> Optional[BaseModel]:
        """Load a record by id, or None."""
        key = self.key_for(record_id)
        document = await self.retry_policy.execute(lambda: self.backend.json_get(key), operation="get")
        if document is None:
            return None
        return self.to_record(key, document)

    async def delete(self, record_id: str) -> bool:
        """Delete a record by id; True if it existed."""
        key = self.key_for(record_id)
        return await self.retry_policy.execute(lambda: self.backend.delete(key), operation="delete")

    def query(self, expression: Optional[QueryNode] = None, sort_by: Optional[str] = None,
              ascending: bool = True, limit: Optional[int] = None) -> QueryResult:
        """
        Build a lazy query over the collection.

        Raises:
            TranslationError: If the expression does not fit the record type
        """
        if limit is not None and limit < 0:
            raise ValueError("Limit cannot be negative")
        native = self.translator.translate(expression, sort_by=sort_by, ascending=ascending)
        return QueryResult(self, native, limit=limit)

    async def count(self, expression: Optional[QueryNode] = None) -> int:
        """Count matching records without loading them."""
        native = self.translator.translate(expression)
        page = await self.search_page(native, 0, 0)
        return page.total

    async def search_page(self, native: NativeQuery, offset: int, limit: int):
        """Fetch one page of raw hits."""
        return await self.retry_policy.execute(
            lambda: self.backend.search(
                native.index_name, native.query,
                offset=offset, limit=limit,
                sort_by=native.sort_by, ascending=native.ascending,
            ),
            operation="search",
        )

    def __repr__(self) -> str:
        return f"RedisCollection(record_type={self.record_type.name!r}, index={self.record_type.index_name!r})"
