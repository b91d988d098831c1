"""
Schema flattening, document mapping and query translation.
"""

from .schema import SchemaDescriptor, describe, resolve_value_type
from .mapper import DocumentMapper
from .translator import QueryTranslator, escape_tag

__all__ = [
    "SchemaDescriptor",
    "describe",
    "resolve_value_type",
    "DocumentMapper",
    "QueryTranslator",
    "escape_tag",
]
