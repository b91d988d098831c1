"""
Document mapper: converts typed records to stored JSON documents and back.

Documents are keyed by attribute name, the same names the index paths use,
so model aliases are ignored on both sides of the round trip.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError

from ..errors import MappingError
from ..models.base import FieldKind, GeoLoc
from ..models.schema import FieldDescriptor, RecordType, SchemaRegistry
from ..utils.logging import LoggerMixin
from .schema import describe

_MISSING = object()


def lookup_attribute(record: BaseModel, segments: List[str]) -> Any:
    """Get the value at an attribute path of a record, or a sentinel when absent."""
    current: Any = record
    for segment in segments:
        if not isinstance(current, BaseModel) or segment not in type(current).model_fields:
            return _MISSING
        current = getattr(current, segment, _MISSING)
        if current is _MISSING:
            return _MISSING
    return current


def value_matches_kind(value: Any, kind: FieldKind, is_list: bool = False) -> bool:
    """Check a runtime value against an index kind."""
    if is_list:
        return isinstance(value, (list, tuple, set, frozenset)) and all(isinstance(item, str) for item in value)
    if kind == FieldKind.EXACT:
        return isinstance(value, (str, bool))
    if kind == FieldKind.FULL_TEXT:
        return isinstance(value, str)
    if kind == FieldKind.NUMERIC:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == FieldKind.GEO:
        return isinstance(value, GeoLoc)
    return False


class DocumentMapper(LoggerMixin):
    """Maps records of one record type to and from stored documents."""

    def __init__(self, record_type: RecordType, registry: Optional[SchemaRegistry] = None,
                 descriptors: Optional[List[FieldDescriptor]] = None):
        self.record_type = record_type
        self.descriptors = descriptors if descriptors is not None else describe(record_type, registry)

    def to_document(self, record: BaseModel) -> Dict[str, Any]:
        """
        Serialize a record to its stored JSON document.

        Args:
            record: Instance of the record type's model

        Returns:
            JSON-compatible document with nested structure preserved

        Raises:
            MappingError: If the record is of the wrong model, an indexed
                value does not match its field kind or a value has no JSON form
        """
        if not isinstance(record, self.record_type.model):
            raise MappingError(
                f"Expected {self.record_type.model.__name__}, got {type(record).__name__}",
                operation="to_document", record_type=self.record_type.name,
            )

        for descriptor in self.descriptors:
            value = lookup_attribute(record, descriptor.segments)
            if value is _MISSING or value is None:
                continue
            if not value_matches_kind(value, descriptor.kind, descriptor.is_list):
                raise MappingError(
                    f"Value of type {type(value).__name__} does not fit a '{descriptor.kind.value}' field",
                    operation="to_document", record_type=self.record_type.name,
                    field_path=descriptor.path,
                )

        try:
            return record.model_dump(mode="json", by_alias=False)
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise MappingError(
                f"Record cannot be serialized to JSON: {e}",
                operation="to_document", record_type=self.record_type.name,
            ) from e

    def from_document(self, document: Dict[str, Any]) -> BaseModel:
        """
        Deserialize a stored document into a record.

        Raises:
            MappingError: If a required field is absent or a value has the
                wrong shape
        """
        if not isinstance(document, dict):
            raise MappingError(
                f"Document must be an object, got {type(document).__name__}",
                operation="from_document", record_type=self.record_type.name,
            )
        try:
            return self.record_type.model.model_validate(document, by_alias=False, by_name=True)
        except ValidationError as e:
            first = e.errors()[0]
            field_path = ".".join(str(part) for part in first.get("loc", ()))
            if first.get("type") == "missing":
                message = "Required field is absent from the document"
            else:
                message = f"Invalid value in document: {first.get('msg')}"
            self.logger.warning(
                "Document mapping failed",
                record_type=self.record_type.name,
                field_path=field_path,
                error_count=e.error_count(),
            )
            raise MappingError(
                message, operation="from_document", record_type=self.record_type.name,
                field_path=field_path or None,
            ) from e
