"""
Query expression models.

Expressions are small immutable trees built per query call and consumed by
the query translator. Nodes compose with ``&``, ``|`` and ``~``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, Field

from .base import DistanceUnit


class QueryNode:
    """Base class for query expression nodes."""

    def __and__(self, other: "QueryNode") -> "And":
        return And(self, other)

    def __or__(self, other: "QueryNode") -> "Or":
        return Or(self, other)

    def __invert__(self) -> "Not":
        return Not(self)


@dataclass(frozen=True)
class Eq(QueryNode):
    """Field equals value."""
    path: str
    value: Any


@dataclass(frozen=True)
class In(QueryNode):
    """Field equals any of the values."""
    path: str
    values: Tuple[Any, ...]

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True)
class Range(QueryNode):
    """Numeric field within bounds; a missing bound is open."""
    path: str
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_inclusive: bool = True
    max_inclusive: bool = True


@dataclass(frozen=True)
class GeoRadius(QueryNode):
    """Geo field within a radius of a point."""
    path: str
    longitude: float
    latitude: float
    radius: float
    unit: DistanceUnit = DistanceUnit.MILES

    def __post_init__(self):
        object.__setattr__(self, "unit", DistanceUnit(self.unit))


@dataclass(frozen=True)
class TextMatch(QueryNode):
    """Full-text field contains the phrase."""
    path: str
    text: str


@dataclass(frozen=True, init=False)
class And(QueryNode):
    """All children match."""
    children: Tuple[QueryNode, ...] = field(default=())

    def __init__(self, *children: QueryNode):
        object.__setattr__(self, "children", tuple(children))


@dataclass(frozen=True, init=False)
class Or(QueryNode):
    """Any child matches."""
    children: Tuple[QueryNode, ...] = field(default=())

    def __init__(self, *children: QueryNode):
        object.__setattr__(self, "children", tuple(children))


@dataclass(frozen=True)
class Not(QueryNode):
    """Child does not match."""
    child: QueryNode


QueryExpression = Union[Eq, In, Range, GeoRadius, TextMatch, And, Or, Not]


@dataclass(frozen=True)
class NativeQuery:
    """Translated backend query."""
    index_name: str
    query: str
    sort_by: Optional[str] = None
    ascending: bool = True


class InsertResult(BaseModel):
    """Outcome of one record in a batch insert."""

    index: int = Field(..., description="Position of the record in the batch")
    success: bool = Field(..., description="Whether the record was written")
    id: Optional[str] = Field(default=None, description="Record id on success")
    error: Optional[str] = Field(default=None, description="Error message on failure")
    error_type: Optional[str] = Field(default=None, description="Error class on failure")

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "index": self.index,
            "success": self.success,
            "id": self.id,
            "error": self.error,
            "error_type": self.error_type
        }
