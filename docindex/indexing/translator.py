"""
Query translator: converts typed query expressions into RediSearch syntax.
"""

import math
import re
from typing import Any, Dict, List, Optional

from ..errors import TranslationError
from ..models.base import DistanceUnit, FieldKind
from ..models.query import (
    And, Eq, GeoRadius, In, NativeQuery, Not, Or, QueryNode, Range, TextMatch,
)
from ..models.schema import FieldDescriptor, RecordType, SchemaRegistry
from ..utils.logging import LoggerMixin
from .schema import describe

# Characters that must be escaped inside tag values and field names
TAG_SPECIAL_CHARS = set(",.<>{}[]\"':;!@#$%^&*()-+=~|/\\ ")

_WORD_RE = re.compile(r"\w+", re.UNICODE)


def escape_tag(value: str) -> str:
    """Escape a tag value for use inside {...}."""
    return "".join(f"\\{char}" if char in TAG_SPECIAL_CHARS else char for char in value)


def text_terms(text: str) -> List[str]:
    """Split text into the terms a phrase query matches on."""
    return _WORD_RE.findall(text)


def format_number(value: Any) -> str:
    """Format a numeric bound for a range clause."""
    if isinstance(value, bool):
        raise TypeError("Booleans are not numeric bounds")
    if isinstance(value, float):
        if math.isinf(value):
            return "+inf" if value > 0 else "-inf"
        if math.isnan(value):
            raise ValueError("NaN is not a valid bound")
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    raise TypeError(f"Expected a number, got {type(value).__name__}")


class QueryTranslator(LoggerMixin):
    """Translates query expressions for one record type."""

    def __init__(self, record_type: RecordType, registry: Optional[SchemaRegistry] = None,
                 descriptors: Optional[List[FieldDescriptor]] = None):
        self.record_type = record_type
        self.descriptors = descriptors if descriptors is not None else describe(record_type, registry)
        self._by_path: Dict[str, FieldDescriptor] = {}
        for descriptor in self.descriptors:
            self._by_path[descriptor.path] = descriptor
            self._by_path[descriptor.json_path] = descriptor
            self._by_path[descriptor.alias] = descriptor

    def resolve(self, path: str) -> FieldDescriptor:
        """
        Resolve a field path to its descriptor.

        Accepts dotted paths ("work_address.postal_code"), JSON paths
        ("$.work_address.postal_code") and index aliases.

        Raises:
            TranslationError: If the path is not an indexed field
        """
        descriptor = self._by_path.get(path)
        if descriptor is None and not path.startswith("$"):
            descriptor = self._by_path.get(f"$.{path}")
        if descriptor is None:
            raise TranslationError(
                "Field path is not indexed",
                operation="translate", record_type=self.record_type.name, field_path=path,
            )
        return descriptor

    def translate(self, expression: Optional[QueryNode] = None, sort_by: Optional[str] = None,
                  ascending: bool = True) -> NativeQuery:
        """
        Translate an expression into a native query.

        Args:
            expression: Query tree; None matches every record
            sort_by: Sort key passed through to the backend; resolved to an
                index alias when it names an indexed field
            ascending: Sort direction

        Returns:
            NativeQuery for the record type's index

        Raises:
            TranslationError: If the expression does not fit the record type
        """
        query = "*" if expression is None else self._node(expression)

        sort_key = sort_by
        if sort_by is not None:
            descriptor = self._by_path.get(sort_by) or self._by_path.get(f"$.{sort_by}")
            if descriptor is not None:
                sort_key = descriptor.alias

        self.logger.debug("Query translated", record_type=self.record_type.name, query=query)
        return NativeQuery(
            index_name=self.record_type.index_name,
            query=query,
            sort_by=sort_key,
            ascending=ascending,
        )

    def _node(self, node: QueryNode) -> str:
        if isinstance(node, Eq):
            return self._eq(node)
        if isinstance(node, In):
            return self._in(node)
        if isinstance(node, Range):
            return self._range(node)
        if isinstance(node, GeoRadius):
            return self._geo_radius(node)
        if isinstance(node, TextMatch):
            return self._text_match(node)
        if isinstance(node, And):
            return self._group(node.children, " ", "And")
        if isinstance(node, Or):
            return self._group(node.children, " | ", "Or")
        if isinstance(node, Not):
            return f"-({self._node(node.child)})"
        raise TranslationError(
            f"Unsupported query node {type(node).__name__}",
            operation="translate", record_type=self.record_type.name,
        )

    def _group(self, children, separator: str, name: str) -> str:
        if not children:
            raise TranslationError(
                f"{name} needs at least one child",
                operation="translate", record_type=self.record_type.name,
            )
        if len(children) == 1:
            return self._node(children[0])
        return "(" + separator.join(self._node(child) for child in children) + ")"

    def _fail(self, message: str, path: str) -> TranslationError:
        return TranslationError(message, operation="translate",
                                record_type=self.record_type.name, field_path=path)

    def _eq(self, node: Eq) -> str:
        descriptor = self.resolve(node.path)
        if descriptor.kind == FieldKind.EXACT:
            return f"@{descriptor.alias}:{{{self._tag_value(node.value, node.path)}}}"
        if descriptor.kind == FieldKind.NUMERIC:
            number = self._number(node.value, node.path)
            return f"@{descriptor.alias}:[{number} {number}]"
        if descriptor.kind == FieldKind.FULL_TEXT:
            if not isinstance(node.value, str):
                raise self._fail("Full-text equality needs a string value", node.path)
            return self._phrase(descriptor, node.value, node.path)
        raise self._fail(f"Equality is not supported on '{descriptor.kind.value}' fields", node.path)

    def _in(self, node: In) -> str:
        descriptor = self.resolve(node.path)
        if descriptor.kind != FieldKind.EXACT:
            raise self._fail(f"Membership needs an exact field, got '{descriptor.kind.value}'", node.path)
        if not node.values:
            raise self._fail("Membership needs at least one value", node.path)
        tags = "|".join(self._tag_value(value, node.path) for value in node.values)
        return f"@{descriptor.alias}:{{{tags}}}"

    def _range(self, node: Range) -> str:
        descriptor = self.resolve(node.path)
        if descriptor.kind != FieldKind.NUMERIC:
            raise self._fail(f"Range needs a numeric field, got '{descriptor.kind.value}'", node.path)
        if node.minimum is None and node.maximum is None:
            raise self._fail("Range needs at least one bound", node.path)
        low = "-inf" if node.minimum is None else self._number(node.minimum, node.path)
        high = "+inf" if node.maximum is None else self._number(node.maximum, node.path)
        if node.minimum is not None and node.maximum is not None and node.minimum > node.maximum:
            raise self._fail("Range minimum exceeds maximum", node.path)

        if node.minimum is not None and not node.min_inclusive:
            low = f"({low}"
        if node.maximum is not None and not node.max_inclusive:
            high = f"({high}"
        return f"@{descriptor.alias}:[{low} {high}]"

    def _geo_radius(self, node: GeoRadius) -> str:
        descriptor = self.resolve(node.path)
        if descriptor.kind != FieldKind.GEO:
            raise self._fail(f"Geo radius needs a geo field, got '{descriptor.kind.value}'", node.path)
        if not -180.0 <= node.longitude <= 180.0 or not -90.0 <= node.latitude <= 90.0:
            raise self._fail("Geo radius center is out of range", node.path)
        if node.radius < 0:
            raise self._fail("Geo radius cannot be negative", node.path)

        meters = DistanceUnit(node.unit).to_meters(node.radius)
        return (f"@{descriptor.alias}:[{format_number(float(node.longitude))} "
                f"{format_number(float(node.latitude))} {format_number(meters)} m]")

    def _text_match(self, node: TextMatch) -> str:
        descriptor = self.resolve(node.path)
        if descriptor.kind != FieldKind.FULL_TEXT:
            raise self._fail(f"Text match needs a full-text field, got '{descriptor.kind.value}'", node.path)
        return self._phrase(descriptor, node.text, node.path)

    def _phrase(self, descriptor: FieldDescriptor, text: str, path: str) -> str:
        terms = text_terms(text)
        if not terms:
            raise self._fail("Text query has no searchable terms", path)
        return f'@{descriptor.alias}:"{" ".join(terms)}"'

    def _tag_value(self, value: Any, path: str) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if not isinstance(value, str):
            raise self._fail(f"Exact match needs a string value, got {type(value).__name__}", path)
        if value == "":
            raise self._fail("Exact match value cannot be empty", path)
        return escape_tag(value)

    def _number(self, value: Any, path: str) -> str:
        try:
            return format_number(value)
        except (TypeError, ValueError) as e:
            raise self._fail(str(e), path) from e
