"""
Base models and enumerations for the document indexing layer.
"""

from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator

# Decimal digits kept when a GeoLoc is encoded as "lon,lat"
GEO_PRECISION = 6
GEO_EPSILON = 1e-6


class FieldKind(str, Enum):
    """Index kinds a field can be declared with."""
    EXACT = "exact"
    FULL_TEXT = "full_text"
    NUMERIC = "numeric"
    GEO = "geo"

    @property
    def search_type(self) -> str:
        """RediSearch schema type for this kind."""
        return _SEARCH_TYPES[self]


_SEARCH_TYPES = {
    FieldKind.EXACT: "TAG",
    FieldKind.FULL_TEXT: "TEXT",
    FieldKind.NUMERIC: "NUMERIC",
    FieldKind.GEO: "GEO",
}


class ValueType(str, Enum):
    """Runtime value shapes a model attribute can hold."""
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    GEO = "geo"
    OBJECT = "object"
    STRING_LIST = "string_list"
    OTHER = "other"


class DistanceUnit(str, Enum):
    """Units accepted by geo-radius predicates."""
    MILES = "mi"
    KILOMETERS = "km"
    METERS = "m"
    FEET = "ft"

    def to_meters(self, distance: float) -> float:
        """Convert a distance in this unit to meters."""
        return distance * _METERS_PER_UNIT[self]


_METERS_PER_UNIT = {
    DistanceUnit.MILES: 1609.344,
    DistanceUnit.KILOMETERS: 1000.0,
    DistanceUnit.METERS: 1.0,
    DistanceUnit.FEET: 0.3048,
}


class GeoLoc(BaseModel):
    """A (longitude, latitude) coordinate."""

    model_config = ConfigDict(frozen=True)

    longitude: float = Field(..., ge=-180.0, le=180.0, description="Longitude in degrees")
    latitude: float = Field(..., ge=-90.0, le=90.0, description="Latitude in degrees")

    def __init__(self, longitude: Any = None, latitude: Any = None, **data):
        if longitude is not None:
            data["longitude"] = longitude
        if latitude is not None:
            data["latitude"] = latitude
        super().__init__(**data)

    @model_validator(mode="before")
    @classmethod
    def parse_encoded(cls, data: Any) -> Any:
        """Accept the stored "lon,lat" string form."""
        if isinstance(data, str):
            return cls.decode_parts(data)
        if isinstance(data, (list, tuple)) and len(data) == 2:
            return {"longitude": data[0], "latitude": data[1]}
        return data

    @staticmethod
    def decode_parts(value: str) -> Dict[str, float]:
        """Split an encoded coordinate into its components."""
        parts = value.split(",")
        if len(parts) != 2:
            raise ValueError(f"Geo value must be 'longitude,latitude', got {value!r}")
        return {"longitude": float(parts[0]), "latitude": float(parts[1])}

    @model_serializer
    def serialize(self) -> str:
        return self.encode()

    def encode(self) -> str:
        """Encode as the "lon,lat" string stored in documents."""
        return f"{self.longitude:.{GEO_PRECISION}f},{self.latitude:.{GEO_PRECISION}f}"

    def is_close(self, other: "GeoLoc", epsilon: float = GEO_EPSILON) -> bool:
        """Compare coordinates within the encoding precision."""
        return (abs(self.longitude - other.longitude) <= epsilon
                and abs(self.latitude - other.latitude) <= epsilon)

    def __str__(self) -> str:
        return self.encode()
