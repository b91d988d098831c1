"""
Schema declaration models: explicit index configuration for record types.
"""

from typing import Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import FieldKind, ValueType


class FieldSpec(BaseModel):
    """Index declaration for one attribute of a record model."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Model attribute name")
    kind: Optional[FieldKind] = Field(default=None, description="Index kind; None stores without indexing")
    cascade_depth: int = Field(default=0, description="Nested object levels indexed individually")
    json_paths: Tuple[str, ...] = Field(default=(), description="Alternate sub-paths of a nested object to index")
    sortable: bool = Field(default=False, description="Allow sorting on this field")
    is_id: bool = Field(default=False, description="Holds the record identifier suffix")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        """Validate attribute name."""
        if not v or not v.strip():
            raise ValueError("Field name cannot be empty")
        return v.strip()


class RecordType(BaseModel):
    """Registered schema for one application record model."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., description="Record type name")
    model: Type[BaseModel] = Field(..., description="Pydantic model class of the records")
    fields: Tuple[FieldSpec, ...] = Field(default=(), description="Declared fields in order")
    index_name: str = Field(..., description="Logical index name")
    prefixes: Tuple[str, ...] = Field(default=(), description="Key prefixes routed into the index")

    @field_validator("prefixes")
    @classmethod
    def validate_prefixes(cls, v):
        """Validate key prefixes."""
        for prefix in v:
            if not prefix or ":" in prefix:
                raise ValueError(f"Invalid key prefix: {prefix!r}")
        return v

    @property
    def key_prefix(self) -> str:
        """Prefix used for new keys."""
        return self.prefixes[0] if self.prefixes else self.name

    @property
    def id_field(self) -> Optional[FieldSpec]:
        """Declared identifier field, if any."""
        for spec in self.fields:
            if spec.is_id:
                return spec
        return None

    def get_field(self, name: str) -> Optional[FieldSpec]:
        """Get a field declaration by attribute name."""
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None


class FieldDescriptor(BaseModel):
    """One flattened, indexable field path of a record type."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Dotted attribute path")
    json_path: str = Field(..., description="JSON path in the stored document")
    alias: str = Field(..., description="Index attribute name")
    kind: FieldKind = Field(..., description="Index kind")
    value_type: ValueType = Field(..., description="Runtime value shape")
    nested: Optional[str] = Field(default=None, description="Nested record type owning this field")
    cascade_depth: int = Field(default=0, description="Depth budget of the enclosing expansion")
    sortable: bool = Field(default=False)

    @property
    def is_list(self) -> bool:
        """Whether the field holds a list of values."""
        return self.value_type == ValueType.STRING_LIST

    @property
    def segments(self) -> List[str]:
        """Attribute names along the path."""
        return self.path.split(".")


class SchemaRegistry:
    """Maps record model classes to their registered record types."""

    def __init__(self):
        self._types: Dict[Type[BaseModel], RecordType] = {}

    def register(self, record_type: RecordType) -> RecordType:
        """Register or replace the record type of a model class."""
        self._types[record_type.model] = record_type
        return record_type

    def get(self, model: Type[BaseModel]) -> Optional[RecordType]:
        """Get the record type registered for a model class."""
        return self._types.get(model)

    def __contains__(self, model: Type[BaseModel]) -> bool:
        return model in self._types

    def __len__(self) -> int:
        return len(self._types)

    def clear(self) -> None:
        """Forget all registrations."""
        self._types.clear()


# Global registry used when callers do not pass their own
default_registry = SchemaRegistry()


def register_record_type(model: Type[BaseModel],
                         fields: List[FieldSpec],
                         index_name: Optional[str] = None,
                         prefixes: Optional[List[str]] = None,
                         name: Optional[str] = None,
                         registry: Optional[SchemaRegistry] = None) -> RecordType:
    """
    Declare and register the index schema of a record model.

    Args:
        model: Pydantic model class of the records
        fields: Field declarations, in index order
        index_name: Logical index name (defaults to "<name>-idx")
        prefixes: Key prefixes (defaults to [name])
        name: Record type name (defaults to the model class name)
        registry: Registry to add the type to (defaults to the global one)

    Returns:
        The registered RecordType
    """
    type_name = name or model.__name__
    record_type = RecordType(
        name=type_name,
        model=model,
        fields=tuple(fields),
        index_name=index_name or f"{type_name}-idx",
        prefixes=tuple(prefixes) if prefixes else (type_name,),
    )
    return (registry or default_registry).register(record_type)
