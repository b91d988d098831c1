"""Schema flattening tests."""

from typing import Optional

import pytest
from pydantic import BaseModel

from docindex.errors import SchemaError
from docindex.indexing.schema import describe, normalize_json_path, resolve_value_type
from docindex.models import FieldKind, FieldSpec, GeoLoc, SchemaRegistry, ValueType, register_record_type

from tests.elves import Address, Elf, Toy

ELF_PATHS = [
    "id",
    "first_name",
    "last_name",
    "age",
    "home_address.street_address",
    "home_address.postal_code",
    "home_address.location",
    "home_address.forwarding_address.street_address",
    "home_address.forwarding_address.postal_code",
    "home_address.forwarding_address.location",
    "work_address.postal_code",
    "work_address.location",
]


def test_elf_flattening_order(elf_type, registry):
    descriptors = describe(elf_type, registry)
    assert [d.path for d in descriptors] == ELF_PATHS


def test_nested_descriptor_paths_and_aliases(elf_type, registry):
    by_path = {d.path: d for d in describe(elf_type, registry)}

    forwarding = by_path["home_address.forwarding_address.postal_code"]
    assert forwarding.json_path == "$.home_address.forwarding_address.postal_code"
    assert forwarding.alias == "home_address_forwarding_address_postal_code"
    assert forwarding.kind == FieldKind.EXACT
    assert forwarding.nested == "Address"

    assert by_path["home_address.street_address"].kind == FieldKind.FULL_TEXT
    assert by_path["home_address.location"].kind == FieldKind.GEO
    assert by_path["age"].kind == FieldKind.NUMERIC
    assert by_path["age"].sortable is True
    assert by_path["id"].nested is None


def test_json_paths_take_kind_from_nested_declaration(elf_type, registry):
    by_path = {d.path: d for d in describe(elf_type, registry)}
    assert by_path["work_address.postal_code"].kind == FieldKind.EXACT
    assert by_path["work_address.location"].kind == FieldKind.GEO
    assert by_path["work_address.location"].json_path == "$.work_address.location"
    assert "work_address.street_address" not in by_path


def test_depth_bound_truncates_expansion(elf_type, registry):
    paths = [d.path for d in describe(elf_type, registry, max_depth=1)]
    assert "home_address.postal_code" in paths
    assert "work_address.postal_code" in paths
    assert not any(p.startswith("home_address.forwarding_address") for p in paths)

    top_level = [d.path for d in describe(elf_type, registry, max_depth=0)]
    assert top_level == ["id", "first_name", "last_name", "age"]


class Route(BaseModel):
    name: str
    stop: Optional[Address] = None


class Sleigh(BaseModel):
    pilot: str
    route: Optional[Route] = None


def test_json_paths_respect_remaining_depth(registry):
    register_record_type(
        Route,
        [
            FieldSpec(name="name", kind=FieldKind.EXACT),
            FieldSpec(name="stop", json_paths=("$.postal_code",)),
        ],
        registry=registry,
    )
    sleigh = register_record_type(
        Sleigh,
        [FieldSpec(name="pilot", kind=FieldKind.EXACT), FieldSpec(name="route", cascade_depth=1)],
        registry=registry,
    )

    assert [d.path for d in describe(sleigh, registry)] == ["pilot", "route.name"]
    deeper = register_record_type(
        Sleigh,
        [FieldSpec(name="pilot", kind=FieldKind.EXACT), FieldSpec(name="route", cascade_depth=2)],
        registry=registry,
    )
    assert [d.path for d in describe(deeper, registry)] == ["pilot", "route.name", "route.stop.postal_code"]


def test_self_reference_terminates(registry):
    record_type = register_record_type(
        Address,
        [
            FieldSpec(name="postal_code", kind=FieldKind.EXACT),
            FieldSpec(name="forwarding_address", cascade_depth=10),
        ],
        registry=registry,
    )
    paths = [d.path for d in describe(record_type, registry, max_depth=3)]
    assert paths == [
        "postal_code",
        "forwarding_address.postal_code",
        "forwarding_address.forwarding_address.postal_code",
        "forwarding_address.forwarding_address.forwarding_address.postal_code",
    ]


def test_describe_is_deterministic(elf_type, registry):
    assert describe(elf_type, registry) == describe(elf_type, registry)


def test_string_list_uses_wildcard_json_path(registry):
    by_path = {d.path: d for d in describe(registry.get(Toy), registry)}
    assert by_path["tags"].json_path == "$.tags[*]"
    assert by_path["tags"].is_list
    assert "id" not in by_path


def test_resolve_value_type():
    assert resolve_value_type(Optional[str]) == (ValueType.STRING, None)
    assert resolve_value_type(int) == (ValueType.INTEGER, None)
    assert resolve_value_type(bool) == (ValueType.BOOLEAN, None)
    assert resolve_value_type(GeoLoc) == (ValueType.GEO, None)
    assert resolve_value_type(Optional[Address]) == (ValueType.OBJECT, Address)


@pytest.mark.parametrize("raw", ["$.postal_code", "$postal_code", "postal_code"])
def test_normalize_json_path(raw):
    assert normalize_json_path(raw) == ["postal_code"]


class Gift(BaseModel):
    id: Optional[str] = None
    name: str
    weight: float = 0.0
    sender: Optional[Address] = None


def _describe_gift(fields, registry=None):
    registry = registry or SchemaRegistry()
    record_type = register_record_type(Gift, fields, registry=registry)
    return describe(record_type, registry)


@pytest.mark.parametrize("fields, field_path", [
    ([FieldSpec(name="colour", kind=FieldKind.EXACT)], "colour"),
    ([FieldSpec(name="name", kind=FieldKind.NUMERIC)], "name"),
    ([FieldSpec(name="name", kind=FieldKind.GEO)], "name"),
    ([FieldSpec(name="weight", kind=FieldKind.FULL_TEXT)], "weight"),
    ([FieldSpec(name="sender", cascade_depth=-1)], "sender"),
    ([FieldSpec(name="sender", kind=FieldKind.EXACT)], "sender"),
    ([FieldSpec(name="name", kind=FieldKind.EXACT, cascade_depth=1)], "name"),
    ([FieldSpec(name="sender", cascade_depth=1)], "sender"),
])
def test_invalid_declarations(fields, field_path):
    with pytest.raises(SchemaError) as exc_info:
        _describe_gift(fields)
    assert exc_info.value.field_path == field_path
    assert exc_info.value.record_type == "Gift"


def test_multiple_id_fields_rejected():
    with pytest.raises(SchemaError, match="Only one id field"):
        _describe_gift([FieldSpec(name="id", is_id=True), FieldSpec(name="name", is_id=True)])


def test_id_field_must_be_string():
    with pytest.raises(SchemaError, match="Id field must be a string"):
        _describe_gift([FieldSpec(name="weight", is_id=True)])


def test_unresolvable_json_path(registry):
    with pytest.raises(SchemaError, match="does not resolve"):
        _describe_gift([FieldSpec(name="sender", json_paths=("$.zip",))], registry)


def test_json_paths_and_cascade_are_exclusive(registry):
    with pytest.raises(SchemaError, match="not both"):
        _describe_gift([FieldSpec(name="sender", cascade_depth=1, json_paths=("$.postal_code",))], registry)


def test_geo_fields_cannot_be_sortable(registry):
    with pytest.raises(SchemaError, match="sortable"):
        describe(register_record_type(
            Address, [FieldSpec(name="location", kind=FieldKind.GEO, sortable=True)], registry=registry,
        ), registry)


class Parcel(BaseModel):
    sender_postal_code: str
    sender: Optional[Address] = None


def test_duplicate_alias_rejected(registry):
    record_type = register_record_type(
        Parcel,
        [
            FieldSpec(name="sender_postal_code", kind=FieldKind.EXACT),
            FieldSpec(name="sender", cascade_depth=1),
        ],
        registry=registry,
    )
    with pytest.raises(SchemaError, match="same index attribute"):
        describe(record_type, registry)


def test_unregistered_stored_only_nested_is_allowed():
    descriptors = _describe_gift([
        FieldSpec(name="name", kind=FieldKind.FULL_TEXT),
        FieldSpec(name="sender"),
    ])
    assert [d.path for d in descriptors] == ["name"]


def test_elf_is_registered(registry):
    assert Elf in registry
    assert registry.get(Elf).index_name == "Elves"
    assert registry.get(Elf).key_prefix == "Elf"
