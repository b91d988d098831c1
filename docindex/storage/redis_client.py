"""
Redis Stack client for JSON documents and RediSearch indexes.
"""

import json
from typing import Dict, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from redis.asyncio import Redis
from redis.commands.search.field import Field as SearchField, GeoField, NumericField, TagField, TextField
from redis.commands.search.index_definition import IndexDefinition as SearchIndexDefinition, IndexType
from redis.commands.search.query import Query
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    ResponseError,
    TimeoutError as RedisTimeoutError,
)

from ..config import settings
from ..errors import BackendError, IndexAlreadyExists, IndexNotFound, TransientBackendError
from ..models.base import FieldKind
from ..models.index import IndexDefinition, IndexField
from ..utils.logging import get_logger
from ..utils.metrics import monitor_function
from .base import BaseBackend, SearchPage

# RediSearch error fragments, lowercased
_MISSING_INDEX_MESSAGES = ("unknown index name", "no such index", "unknown index", "alias does not exist", "not found")
_EXISTING_INDEX_MESSAGES = ("index already exists", "alias already exists")

# Tag separator that does not collide with normal text
TAG_SEPARATOR = "|"

QUERY_DIALECT = 2


class RedisConfig(BaseModel):
    """Redis configuration."""

    model_config = ConfigDict(extra="allow")

    url: str = Field(default_factory=lambda: settings.redis.url, description="Redis URL")
    password: Optional[str] = Field(default_factory=lambda: settings.redis.password, description="Password")
    socket_timeout: float = Field(default_factory=lambda: settings.redis.socket_timeout,
                                  description="Socket timeout in seconds")
    connect_timeout: float = Field(default_factory=lambda: settings.redis.connect_timeout,
                                   description="Connect timeout in seconds")
    max_connections: int = Field(default_factory=lambda: settings.redis.max_connections,
                                 description="Connection pool size")


def _as_number(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _text(value: Any) -> Any:
    return value.decode("utf-8") if isinstance(value, bytes) else value


def search_field(index_field: IndexField) -> SearchField:
    """Schema field for one index entry."""
    options = {"as_name": index_field.alias, "sortable": index_field.sortable}
    if index_field.kind == FieldKind.EXACT:
        return TagField(index_field.json_path, separator=TAG_SEPARATOR, **options)
    if index_field.kind == FieldKind.FULL_TEXT:
        return TextField(index_field.json_path, **options)
    if index_field.kind == FieldKind.NUMERIC:
        return NumericField(index_field.json_path, **options)
    return GeoField(index_field.json_path, **options)


class RedisBackend(BaseBackend):
    """Backend speaking RedisJSON and RediSearch through redis-py's module commands."""

    name = "redis"

    def __init__(self, config: Optional[RedisConfig] = None, client: Optional[Redis] = None):
        self.config = config or RedisConfig()
        self.logger = get_logger(__name__)
        self.client = client
        self._connected = client is not None

    def _get_client(self) -> Redis:
        """Create the connection pool on first use."""
        if self.client is None:
            self.logger.info("Connecting to Redis", url=self.config.url)
            self.client = Redis.from_url(
                self.config.url,
                password=self.config.password,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.connect_timeout,
                max_connections=self.config.max_connections,
                decode_responses=True,
            )
            self._connected = True
        return self.client

    async def _run(self, command: Any, operation: str, index_name: Optional[str] = None) -> Any:
        """Await one driver call, translating driver errors into the error taxonomy."""
        try:
            return await command
        except (RedisConnectionError, RedisTimeoutError) as e:
            self.logger.warning("Transient Redis failure", operation=operation, error=str(e))
            raise TransientBackendError(f"Redis unavailable: {e}", operation=operation) from e
        except ResponseError as e:
            message = str(e).lower()
            if index_name is not None:
                if any(fragment in message for fragment in _MISSING_INDEX_MESSAGES):
                    raise IndexNotFound(index_name, operation=operation) from e
                if any(fragment in message for fragment in _EXISTING_INDEX_MESSAGES):
                    raise IndexAlreadyExists(index_name, operation=operation) from e
            self.logger.error("Redis rejected command", operation=operation, error=str(e))
            raise BackendError(f"Redis rejected {operation}: {e}", operation=operation) from e
        except RedisError as e:
            self.logger.error("Redis command failed", operation=operation, error=str(e))
            raise BackendError(f"Redis {operation} failed: {e}", operation=operation) from e

    @staticmethod
    def build_schema(definition: IndexDefinition) -> List[SearchField]:
        """Schema fields of a definition, in definition order."""
        return [search_field(index_field) for index_field in definition.fields]

    @staticmethod
    def build_query(query: str, offset: int = 0, limit: int = 10,
                    sort_by: Optional[str] = None, ascending: bool = True) -> Query:
        """Search query with paging, sorting and the query dialect."""
        search = Query(query).paging(offset, limit).dialect(QUERY_DIALECT)
        if sort_by:
            search.sort_by(sort_by, asc=ascending)
        return search

    @monitor_function("redis_client", "create_index", "index")
    async def create_index(self, name: str, definition: IndexDefinition) -> None:
        """Create a RediSearch index over JSON documents."""
        index_definition = SearchIndexDefinition(prefix=list(definition.prefixes), index_type=IndexType.JSON)
        command = self._get_client().ft(name).create_index(
            self.build_schema(definition), definition=index_definition,
        )
        await self._run(command, operation="create_index", index_name=name)
        self.logger.info("Index created", index_name=name, fields=len(definition.fields))

    @monitor_function("redis_client", "drop_index", "index")
    async def drop_index(self, name: str, delete_documents: bool = False) -> None:
        """Drop a RediSearch index."""
        command = self._get_client().ft(name).dropindex(delete_documents=delete_documents)
        await self._run(command, operation="drop_index", index_name=name)
        self.logger.info("Index dropped", index_name=name, delete_documents=delete_documents)

    async def index_info(self, name: str) -> Optional[Dict[str, Any]]:
        """Describe an index or alias, or None if missing."""
        try:
            info = await self._run(self._get_client().ft(name).info(), operation="index_info", index_name=name)
        except IndexNotFound:
            return None
        info = {_text(key): value for key, value in (info or {}).items()}
        return {
            "index_name": _text(info.get("index_name", name)),
            "indexing": bool(int(_as_number(info.get("indexing"), 0.0))),
            "percent_indexed": _as_number(info.get("percent_indexed"), 1.0),
            "num_docs": int(_as_number(info.get("num_docs"), 0.0)),
        }

    async def alias_add(self, alias: str, index: str) -> None:
        await self._run(self._get_client().ft(index).aliasadd(alias), operation="alias_add", index_name=alias)

    async def alias_update(self, alias: str, index: str) -> None:
        await self._run(self._get_client().ft(index).aliasupdate(alias), operation="alias_update",
                        index_name=alias)

    async def alias_delete(self, alias: str) -> None:
        await self._run(self._get_client().ft(alias).aliasdel(alias), operation="alias_delete", index_name=alias)

    @monitor_function("redis_client", "json_set", "document")
    async def json_set(self, key: str, document: Dict[str, Any]) -> None:
        """Write a JSON document at the root path."""
        await self._run(self._get_client().json().set(key, "$", document), operation="json_set")

    @monitor_function("redis_client", "json_get", "document")
    async def json_get(self, key: str) -> Optional[Dict[str, Any]]:
        """Read a JSON document."""
        values = await self._run(self._get_client().json().get(key, "$"), operation="json_get")
        if isinstance(values, list):
            return values[0] if values else None
        return values

    async def delete(self, key: str) -> bool:
        """Delete a key."""
        return bool(await self._run(self._get_client().delete(key), operation="delete"))

    @monitor_function("redis_client", "search", "query")
    async def search(self, index: str, query: str, offset: int = 0, limit: int = 10,
                     sort_by: Optional[str] = None, ascending: bool = True) -> SearchPage:
        """Run FT.SEARCH and decode the JSON payloads."""
        search = self.build_query(query, offset, limit, sort_by, ascending)
        result = await self._run(self._get_client().ft(index).search(search), operation="search", index_name=index)
        return self.parse_search_result(result)

    @staticmethod
    def parse_search_result(result: Any) -> SearchPage:
        """
        Decode a search result over JSON documents.

        Accepts redis-py's ``Result`` and the raw RESP3 map returned when the
        client keeps native RESP3 replies.
        """
        if result is None:
            return SearchPage(total=0)
        if isinstance(result, dict):
            result = {_text(key): value for key, value in result.items()}
            hits = []
            for item in result.get("results", []):
                item = {_text(key): value for key, value in item.items()}
                attributes = {_text(key): value for key, value in (item.get("extra_attributes") or {}).items()}
                payload = attributes.get("$")
                if payload is not None:
                    hits.append((_text(item.get("id")), json.loads(_text(payload))))
            return SearchPage(total=int(result.get("total_results", 0)), hits=hits)

        hits = []
        for doc in result.docs:
            payload = getattr(doc, "json", None)
            if payload is None:
                continue
            hits.append((_text(doc.id), json.loads(_text(payload))))
        return SearchPage(total=int(result.total), hits=hits)

    async def get_meta(self, key: str) -> Optional[str]:
        return _text(await self._run(self._get_client().get(key), operation="get_meta"))

    async def set_meta(self, key: str, value: str) -> None:
        await self._run(self._get_client().set(key, value), operation="set_meta")

    async def delete_meta(self, key: str) -> None:
        await self._run(self._get_client().delete(key), operation="delete_meta")

    async def flush(self) -> None:
        """Flush the current database."""
        await self._run(self._get_client().flushdb(), operation="flush")
        self.logger.warning("Database flushed", url=self.config.url)

    async def ping(self) -> bool:
        """Check connectivity."""
        try:
            return bool(await self._run(self._get_client().ping(), operation="ping"))
        except TransientBackendError:
            return False

    async def close(self) -> None:
        """Close the connection pool."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        self._connected = False
        self.logger.info("Disconnected from Redis")

    def is_connected(self) -> bool:
        """Check if a connection pool is open."""
        return self._connected
