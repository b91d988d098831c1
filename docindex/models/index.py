"""
Index models for the document indexing layer.
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import FieldKind
from .schema import FieldDescriptor, RecordType


class IndexField(BaseModel):
    """One (path, kind) entry of an index definition."""

    model_config = ConfigDict(frozen=True)

    json_path: str = Field(..., description="JSON path of the indexed value")
    alias: str = Field(..., description="Index attribute name")
    kind: FieldKind = Field(..., description="Index kind")
    sortable: bool = Field(default=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert field to dictionary."""
        return {
            "json_path": self.json_path,
            "alias": self.alias,
            "kind": self.kind.value,
            "sortable": self.sortable
        }


class IndexDefinition(BaseModel):
    """Backend index definition derived from a record type."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Logical index name")
    record_type: str = Field(..., description="Record type the index serves")
    prefixes: List[str] = Field(..., description="Key prefixes routed into the index")
    fields: List[IndexField] = Field(default_factory=list, description="Indexed fields")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        """Validate index name."""
        if not v or not v.strip():
            raise ValueError("Index name cannot be empty")
        if " " in v:
            raise ValueError("Index name cannot contain spaces")
        return v

    @classmethod
    def from_record_type(cls, record_type: RecordType,
                         descriptors: Sequence[FieldDescriptor]) -> "IndexDefinition":
        """Derive the definition of a record type from its flattened fields."""
        return cls(
            name=record_type.index_name,
            record_type=record_type.name,
            prefixes=[f"{prefix}:" for prefix in (record_type.prefixes or (record_type.name,))],
            fields=[
                IndexField(
                    json_path=descriptor.json_path,
                    alias=descriptor.alias,
                    kind=descriptor.kind,
                    sortable=descriptor.sortable,
                )
                for descriptor in descriptors
            ],
        )

    @property
    def fingerprint(self) -> str:
        """Stable hash of the definition, used to detect schema changes."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        """Convert definition to dictionary."""
        return {
            "name": self.name,
            "record_type": self.record_type,
            "prefixes": list(self.prefixes),
            "fields": [f.to_dict() for f in self.fields]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexDefinition":
        """Create definition from dictionary."""
        return cls(**data)


class IndexHandle(BaseModel):
    """Reference to a live index."""

    name: str = Field(..., description="Logical index name (alias)")
    physical_name: str = Field(..., description="Backend index the alias points to")
    fingerprint: str = Field(..., description="Fingerprint of the definition")
    created: bool = Field(default=False, description="Whether this call built the index")
    replaced: Optional[str] = Field(default=None, description="Physical index swapped out")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert handle to dictionary."""
        return {
            "name": self.name,
            "physical_name": self.physical_name,
            "fingerprint": self.fingerprint,
            "created": self.created,
            "replaced": self.replaced,
            "created_at": self.created_at.isoformat()
        }
