"""
Data models for the document indexing layer.
"""

from .base import FieldKind, ValueType, DistanceUnit, GeoLoc, GEO_EPSILON, GEO_PRECISION
from .schema import FieldSpec, RecordType, FieldDescriptor, SchemaRegistry, default_registry, register_record_type
from .index import IndexField, IndexDefinition, IndexHandle
from .query import (
    QueryNode, QueryExpression, Eq, In, Range, GeoRadius, TextMatch, And, Or, Not,
    NativeQuery, InsertResult,
)

__all__ = [
    "FieldKind",
    "ValueType",
    "DistanceUnit",
    "GeoLoc",
    "GEO_EPSILON",
    "GEO_PRECISION",
    "FieldSpec",
    "RecordType",
    "FieldDescriptor",
    "SchemaRegistry",
    "default_registry",
    "register_record_type",
    "IndexField",
    "IndexDefinition",
    "IndexHandle",
    "QueryNode",
    "QueryExpression",
    "Eq",
    "In",
    "Range",
    "GeoRadius",
    "TextMatch",
    "And",
    "Or",
    "Not",
    "NativeQuery",
    "InsertResult",
]
