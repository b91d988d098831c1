"""
Error taxonomy for the document indexing layer.

Every error carries the operation, record type and field path it relates to,
so a failure can be diagnosed without inspecting the backend.
"""

from typing import Any, Dict, Optional


class DocIndexError(Exception):
    """Base class for all document indexing errors."""

    def __init__(self, message: str, *, operation: Optional[str] = None,
                 record_type: Optional[str] = None, field_path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.record_type = record_type
        self.field_path = field_path

    @property
    def context(self) -> Dict[str, Any]:
        """Non-empty diagnostic context."""
        context = {
            "operation": self.operation,
            "record_type": self.record_type,
            "field_path": self.field_path,
        }
        return {key: value for key, value in context.items() if value is not None}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class SchemaError(DocIndexError):
    """Invalid record type declaration."""


class IndexAlreadyExists(DocIndexError):
    """An index with the requested name already exists."""

    def __init__(self, index_name: str, **kwargs):
        super().__init__(f"Index '{index_name}' already exists", **kwargs)
        self.index_name = index_name


class IndexNotFound(DocIndexError):
    """The requested index does not exist."""

    def __init__(self, index_name: str, **kwargs):
        super().__init__(f"Index '{index_name}' not found", **kwargs)
        self.index_name = index_name


class MappingError(DocIndexError):
    """A record or document does not match its record type."""


class TranslationError(DocIndexError):
    """A query expression cannot be translated for its record type."""


class BackendError(DocIndexError):
    """The backend rejected a command."""


class TransientBackendError(BackendError):
    """Network failure or timeout talking to the backend."""


class IndexBuildTimeout(BackendError):
    """A new physical index did not finish indexing in time."""
