"""
Schema descriptor: flattens a record type into its indexable field paths.

Nested objects are expanded in place, bounded by an explicit depth counter
threaded through the recursion. The same nested type may appear at several
depths with a different field set each time, so no visited-set is kept.
"""

import types
import typing
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel

from ..config import settings
from ..errors import SchemaError
from ..models.base import FieldKind, GeoLoc, ValueType
from ..models.schema import FieldDescriptor, FieldSpec, RecordType, SchemaRegistry, default_registry
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Value types each kind may be declared on
COMPATIBLE_VALUE_TYPES = {
    FieldKind.EXACT: {ValueType.STRING, ValueType.BOOLEAN, ValueType.STRING_LIST},
    FieldKind.FULL_TEXT: {ValueType.STRING},
    FieldKind.NUMERIC: {ValueType.INTEGER, ValueType.FLOAT},
    FieldKind.GEO: {ValueType.GEO},
}

# Kind given to json-path sub-fields that the nested type does not declare
INFERRED_KINDS = {
    ValueType.STRING: FieldKind.EXACT,
    ValueType.BOOLEAN: FieldKind.EXACT,
    ValueType.STRING_LIST: FieldKind.EXACT,
    ValueType.INTEGER: FieldKind.NUMERIC,
    ValueType.FLOAT: FieldKind.NUMERIC,
    ValueType.GEO: FieldKind.GEO,
}


def resolve_value_type(annotation: Any) -> Tuple[ValueType, Optional[Type[BaseModel]]]:
    """
    Classify a model field annotation.

    Optional[X] resolves to X. Returns the value type and, for nested
    objects, the nested model class.
    """
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) != 1:
            return ValueType.OTHER, None
        return resolve_value_type(args[0])

    if origin in (list, List, tuple, set, frozenset):
        args = typing.get_args(annotation)
        if args and args[0] is str:
            return ValueType.STRING_LIST, None
        return ValueType.OTHER, None

    if not isinstance(annotation, type):
        return ValueType.OTHER, None
    if issubclass(annotation, GeoLoc):
        return ValueType.GEO, None
    if issubclass(annotation, BaseModel):
        return ValueType.OBJECT, annotation
    if issubclass(annotation, bool):
        return ValueType.BOOLEAN, None
    if issubclass(annotation, Enum):
        return (ValueType.STRING, None) if issubclass(annotation, str) else (ValueType.OTHER, None)
    if issubclass(annotation, int):
        return ValueType.INTEGER, None
    if issubclass(annotation, float):
        return ValueType.FLOAT, None
    if issubclass(annotation, str):
        return ValueType.STRING, None
    return ValueType.OTHER, None


def normalize_json_path(json_path: str) -> List[str]:
    """Split "$.a.b", "$a.b" or "a.b" into attribute names."""
    path = json_path.strip()
    if path.startswith("$"):
        path = path[1:]
    path = path.lstrip(".")
    segments = [segment for segment in path.split(".") if segment]
    if not segments:
        raise ValueError(f"Empty JSON path: {json_path!r}")
    return segments


class SchemaDescriptor:
    """Flattens record types into ordered field descriptors."""

    def __init__(self, registry: Optional[SchemaRegistry] = None, max_depth: Optional[int] = None):
        self.registry = registry or default_registry
        self.max_depth = settings.indexing.max_cascade_depth if max_depth is None else max_depth
        if self.max_depth < 0:
            raise SchemaError("Maximum cascade depth cannot be negative", operation="describe")

    def describe(self, record_type: RecordType) -> List[FieldDescriptor]:
        """
        Flatten a record type into its indexable fields.

        Fields come in declaration order; a nested field is replaced by the
        contiguous block of its nested type's fields, recursively.

        Raises:
            SchemaError: If a declaration is invalid
        """
        descriptors: List[FieldDescriptor] = []
        self._validate_declarations(record_type)
        self._flatten(record_type, record_type, prefix=(), budget=self.max_depth,
                      owner=None, out=descriptors)

        seen: Dict[str, str] = {}
        for descriptor in descriptors:
            if descriptor.alias in seen:
                raise SchemaError(
                    f"Fields '{seen[descriptor.alias]}' and '{descriptor.path}' "
                    f"map to the same index attribute '{descriptor.alias}'",
                    operation="describe", record_type=record_type.name, field_path=descriptor.path,
                )
            seen[descriptor.alias] = descriptor.path

        logger.debug("Record type described", record_type=record_type.name, fields=len(descriptors))
        return descriptors

    def _validate_declarations(self, record_type: RecordType) -> None:
        id_fields = [spec.name for spec in record_type.fields if spec.is_id]
        if len(id_fields) > 1:
            raise SchemaError(
                f"Only one id field allowed, got {id_fields}",
                operation="describe", record_type=record_type.name,
            )
        if id_fields:
            annotation = self._annotation(record_type, record_type.id_field, ())
            value_type, _ = resolve_value_type(annotation)
            if value_type != ValueType.STRING:
                raise SchemaError(
                    "Id field must be a string",
                    operation="describe", record_type=record_type.name, field_path=id_fields[0],
                )

        names = [spec.name for spec in record_type.fields]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise SchemaError(
                f"Fields declared more than once: {duplicates}",
                operation="describe", record_type=record_type.name,
            )

    def _annotation(self, record_type: RecordType, spec: FieldSpec, prefix: Tuple[str, ...]) -> Any:
        model_field = record_type.model.model_fields.get(spec.name)
        if model_field is None:
            raise SchemaError(
                f"Model {record_type.model.__name__} has no attribute '{spec.name}'",
                operation="describe", record_type=record_type.name,
                field_path=".".join(prefix + (spec.name,)),
            )
        return model_field.annotation

    def _flatten(self, root: RecordType, record_type: RecordType, prefix: Tuple[str, ...],
                 budget: int, owner: Optional[str], out: List[FieldDescriptor]) -> None:
        for spec in record_type.fields:
            path = prefix + (spec.name,)
            dotted = ".".join(path)
            if spec.cascade_depth < 0:
                raise SchemaError(
                    f"Cascade depth cannot be negative, got {spec.cascade_depth}",
                    operation="describe", record_type=root.name, field_path=dotted,
                )

            value_type, nested_model = resolve_value_type(self._annotation(record_type, spec, prefix))

            if value_type != ValueType.OBJECT:
                if spec.cascade_depth or spec.json_paths:
                    raise SchemaError(
                        "Cascade depth and JSON paths only apply to nested object fields",
                        operation="describe", record_type=root.name, field_path=dotted,
                    )
                if spec.kind is None:
                    continue
                self._check_kind(root, spec.kind, value_type, dotted, spec.sortable)
                out.append(self._descriptor(path, spec.kind, value_type, owner, budget, spec.sortable))
                continue

            if spec.kind is not None:
                raise SchemaError(
                    f"Nested object fields cannot be indexed as '{spec.kind.value}'; "
                    "use cascade_depth or json_paths",
                    operation="describe", record_type=root.name, field_path=dotted,
                )

            if spec.json_paths:
                if spec.cascade_depth:
                    raise SchemaError(
                        "Declare either cascade_depth or json_paths on a nested field, not both",
                        operation="describe", record_type=root.name, field_path=dotted,
                    )
                if budget > 0:
                    self._flatten_json_paths(root, spec, nested_model, path, budget - 1, out)
                continue

            effective = min(spec.cascade_depth, budget)
            if effective == 0:
                # Stored only
                continue

            nested_type = self.registry.get(nested_model)
            if nested_type is None:
                raise SchemaError(
                    f"Nested model {nested_model.__name__} has no registered record type",
                    operation="describe", record_type=root.name, field_path=dotted,
                )
            self._flatten(root, nested_type, path, effective - 1, nested_type.name, out)

    def _flatten_json_paths(self, root: RecordType, spec: FieldSpec, nested_model: Type[BaseModel],
                            path: Tuple[str, ...], budget: int, out: List[FieldDescriptor]) -> None:
        dotted = ".".join(path)
        nested_type = self.registry.get(nested_model)
        for json_path in spec.json_paths:
            try:
                segments = normalize_json_path(json_path)
            except ValueError as e:
                raise SchemaError(str(e), operation="describe", record_type=root.name,
                                  field_path=dotted) from e

            model = nested_model
            declared: Optional[FieldSpec] = None
            value_type = ValueType.OTHER
            for depth, segment in enumerate(segments):
                sub_path = ".".join(path + tuple(segments[:depth + 1]))
                model_field = model.model_fields.get(segment) if model is not None else None
                if model_field is None:
                    raise SchemaError(
                        f"JSON path {json_path!r} does not resolve on {nested_model.__name__}",
                        operation="describe", record_type=root.name, field_path=sub_path,
                    )
                value_type, model = resolve_value_type(model_field.annotation)

            if len(segments) == 1 and nested_type is not None:
                declared = nested_type.get_field(segments[0])

            full_path = path + tuple(segments)
            full_dotted = ".".join(full_path)
            if value_type == ValueType.OBJECT:
                raise SchemaError(
                    f"JSON path {json_path!r} points at a nested object",
                    operation="describe", record_type=root.name, field_path=full_dotted,
                )

            kind = declared.kind if declared is not None and declared.kind is not None \
                else INFERRED_KINDS.get(value_type)
            if kind is None:
                raise SchemaError(
                    f"Cannot infer an index kind for JSON path {json_path!r}",
                    operation="describe", record_type=root.name, field_path=full_dotted,
                )
            sortable = declared.sortable if declared is not None else False
            self._check_kind(root, kind, value_type, full_dotted, sortable)
            out.append(self._descriptor(full_path, kind, value_type,
                                        nested_type.name if nested_type else nested_model.__name__,
                                        budget, sortable))

    def _check_kind(self, root: RecordType, kind: FieldKind, value_type: ValueType,
                    dotted: str, sortable: bool) -> None:
        if value_type not in COMPATIBLE_VALUE_TYPES[kind]:
            raise SchemaError(
                f"Kind '{kind.value}' is incompatible with a {value_type.value} value",
                operation="describe", record_type=root.name, field_path=dotted,
            )
        if sortable and kind == FieldKind.GEO:
            raise SchemaError(
                "Geo fields cannot be sortable",
                operation="describe", record_type=root.name, field_path=dotted,
            )

    @staticmethod
    def _descriptor(path: Tuple[str, ...], kind: FieldKind, value_type: ValueType,
                    owner: Optional[str], budget: int, sortable: bool) -> FieldDescriptor:
        json_path = "$." + ".".join(path)
        if value_type == ValueType.STRING_LIST:
            json_path += "[*]"
        return FieldDescriptor(
            path=".".join(path),
            json_path=json_path,
            alias="_".join(path),
            kind=kind,
            value_type=value_type,
            nested=owner,
            cascade_depth=budget,
            sortable=sortable,
        )


def describe(record_type: RecordType, registry: Optional[SchemaRegistry] = None,
             max_depth: Optional[int] = None) -> List[FieldDescriptor]:
    """Flatten a record type into its ordered, indexable field descriptors."""
    return SchemaDescriptor(registry, max_depth).describe(record_type)
