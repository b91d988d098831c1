"""Record models shared by the test suite."""

from typing import List, Optional

from pydantic import BaseModel

from docindex.models import FieldKind, FieldSpec, GeoLoc, SchemaRegistry, register_record_type


class Address(BaseModel):
    street_address: str
    postal_code: str
    location: GeoLoc
    forwarding_address: Optional["Address"] = None


class Elf(BaseModel):
    id: Optional[str] = None
    first_name: str
    last_name: str
    age: int
    home_address: Optional[Address] = None
    work_address: Optional[Address] = None


class Toy(BaseModel):
    id: Optional[str] = None
    name: str
    tags: List[str] = []
    price: float = 0.0
    wrapped: bool = False


ADDRESS_FIELDS = [
    FieldSpec(name="street_address", kind=FieldKind.FULL_TEXT),
    FieldSpec(name="postal_code", kind=FieldKind.EXACT),
    FieldSpec(name="location", kind=FieldKind.GEO),
    FieldSpec(name="forwarding_address", cascade_depth=1),
]

ELF_FIELDS = [
    FieldSpec(name="id", kind=FieldKind.EXACT, is_id=True),
    FieldSpec(name="first_name", kind=FieldKind.EXACT),
    FieldSpec(name="last_name", kind=FieldKind.EXACT),
    FieldSpec(name="age", kind=FieldKind.NUMERIC, sortable=True),
    FieldSpec(name="home_address", cascade_depth=2),
    FieldSpec(name="work_address", json_paths=("$.postal_code", "$location")),
]

TOY_FIELDS = [
    FieldSpec(name="id", is_id=True),
    FieldSpec(name="name", kind=FieldKind.FULL_TEXT),
    FieldSpec(name="tags", kind=FieldKind.EXACT),
    FieldSpec(name="price", kind=FieldKind.NUMERIC, sortable=True),
    FieldSpec(name="wrapped", kind=FieldKind.EXACT),
]


def make_registry() -> SchemaRegistry:
    """Registry holding Address, Elf and Toy."""
    registry = SchemaRegistry()
    register_record_type(Address, ADDRESS_FIELDS, registry=registry)
    register_record_type(Elf, ELF_FIELDS, index_name="Elves", prefixes=["Elf"], registry=registry)
    register_record_type(Toy, TOY_FIELDS, registry=registry)
    return registry


def make_buddy() -> Elf:
    return Elf(
        first_name="Buddy",
        last_name="Hobbs",
        age=30,
        home_address=Address(street_address="55 Central Park West", postal_code="10023",
                             location=GeoLoc(-73.979, 40.772)),
        work_address=Address(street_address="119 West 31st Street", postal_code="10001",
                             location=GeoLoc(-73.991, 40.748)),
    )


def make_bernard() -> Elf:
    return Elf(
        first_name="Bernard",
        last_name="The Arch Elf",
        age=1530,
        home_address=Address(street_address="101 St Nicholas Dr", postal_code="99705",
                             location=GeoLoc(-147.343, 64.755)),
        work_address=Address(street_address="101 St Nicholas Dr", postal_code="99705",
                             location=GeoLoc(-147.343, 64.755)),
    )
