"""
Abstract backend protocol for document stores with secondary indexing.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..models.index import IndexDefinition


@dataclass
class SearchPage:
    """One page of search results."""
    total: int
    hits: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)


class BaseBackend(ABC):
    """
    Commands the indexing layer issues against a store.

    Implementations raise the errors in ``docindex.errors``:
    IndexNotFound / IndexAlreadyExists for index lifecycle conflicts,
    TransientBackendError for network failures and timeouts, and
    BackendError for anything else the store rejects.
    """

    name: str = "backend"

    @abstractmethod
    async def create_index(self, name: str, definition: IndexDefinition) -> None:
        """Create a physical index over the definition's prefixes and fields."""
        pass

    @abstractmethod
    async def drop_index(self, name: str, delete_documents: bool = False) -> None:
        """Drop a physical index, optionally deleting its documents."""
        pass

    @abstractmethod
    async def index_info(self, name: str) -> Optional[Dict[str, Any]]:
        """
        Describe an index or alias.

        Returns None when it does not exist, else a dict with at least
        ``index_name`` (physical name), ``indexing`` (bool) and ``num_docs``.
        """
        pass

    @abstractmethod
    async def alias_add(self, alias: str, index: str) -> None:
        """Point a new alias at an index."""
        pass

    @abstractmethod
    async def alias_update(self, alias: str, index: str) -> None:
        """Atomically repoint an alias."""
        pass

    @abstractmethod
    async def alias_delete(self, alias: str) -> None:
        """Remove an alias."""
        pass

    @abstractmethod
    async def json_set(self, key: str, document: Dict[str, Any]) -> None:
        """Write a JSON document."""
        pass

    @abstractmethod
    async def json_get(self, key: str) -> Optional[Dict[str, Any]]:
        """Read a JSON document, or None."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key; True if it existed."""
        pass

    @abstractmethod
    async def search(self, index: str, query: str, offset: int = 0, limit: int = 10,
                     sort_by: Optional[str] = None, ascending: bool = True) -> SearchPage:
        """Run a native query string against an index."""
        pass

    @abstractmethod
    async def get_meta(self, key: str) -> Optional[str]:
        """Read a metadata string."""
        pass

    @abstractmethod
    async def set_meta(self, key: str, value: str) -> None:
        """Write a metadata string."""
        pass

    @abstractmethod
    async def delete_meta(self, key: str) -> None:
        """Delete a metadata string."""
        pass

    @abstractmethod
    async def flush(self) -> None:
        """Remove every key and index from the current database."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check connectivity."""
        pass

    async def close(self) -> None:
        """Release connections."""
        pass
