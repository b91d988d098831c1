"""
Document indexing and query layer for Redis Stack

Typed records are stored as JSON documents, indexed by RediSearch from
explicit per-type declarations, and queried with typed expressions.
"""

__version__ = "1.0.0"
__author__ = "docindex Team"

from .config import settings
from .utils.logging import setup_logging
from .errors import (
    DocIndexError,
    SchemaError,
    IndexAlreadyExists,
    IndexNotFound,
    MappingError,
    TranslationError,
    BackendError,
    TransientBackendError,
    IndexBuildTimeout,
)
from .models import (
    FieldKind,
    DistanceUnit,
    GeoLoc,
    FieldSpec,
    RecordType,
    SchemaRegistry,
    register_record_type,
    Eq,
    In,
    Range,
    GeoRadius,
    TextMatch,
    And,
    Or,
    Not,
)
from .indexing import describe, DocumentMapper, QueryTranslator
from .storage import ConnectionProvider, IndexManager, RedisCollection, MemoryBackend, RedisBackend

# Setup logging configuration
setup_logging()

__all__ = [
    "settings",
    "setup_logging",
    "DocIndexError",
    "SchemaError",
    "IndexAlreadyExists",
    "IndexNotFound",
    "MappingError",
    "TranslationError",
    "BackendError",
    "TransientBackendError",
    "IndexBuildTimeout",
    "FieldKind",
    "DistanceUnit",
    "GeoLoc",
    "FieldSpec",
    "RecordType",
    "SchemaRegistry",
    "register_record_type",
    "Eq",
    "In",
    "Range",
    "GeoRadius",
    "TextMatch",
    "And",
    "Or",
    "Not",
    "describe",
    "DocumentMapper",
    "QueryTranslator",
    "ConnectionProvider",
    "IndexManager",
    "RedisCollection",
    "MemoryBackend",
    "RedisBackend",
]
