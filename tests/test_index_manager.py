"""Index lifecycle tests."""

import json

import pytest

from docindex.errors import IndexAlreadyExists, IndexBuildTimeout, IndexNotFound, SchemaError
from docindex.indexing.schema import describe
from docindex.models import FieldKind, FieldSpec, register_record_type
from docindex.models.index import IndexDefinition
from docindex.storage import IndexManager, MemoryBackend

from tests.elves import ELF_FIELDS, Elf


@pytest.fixture
def definition(elf_type, registry):
    return IndexDefinition.from_record_type(elf_type, describe(elf_type, registry))


class SlowIndexingBackend(MemoryBackend):
    """Reports every index as still indexing."""

    async def index_info(self, name):
        info = await super().index_info(name)
        if info is not None:
            info["indexing"] = True
        return info


def test_definition_from_record_type(definition):
    assert definition.name == "Elves"
    assert definition.prefixes == ["Elf:"]
    assert len(definition.fields) == 12
    assert definition.fields[6].json_path == "$.home_address.location"
    assert definition.fields[6].kind == FieldKind.GEO
    assert IndexDefinition.from_dict(definition.to_dict()).fingerprint == definition.fingerprint


@pytest.mark.asyncio
async def test_create_index_behind_alias(index_manager, backend, definition):
    handle = await index_manager.create_index(definition)

    assert handle.created is True
    assert handle.replaced is None
    assert handle.physical_name.startswith("Elves-")
    assert backend.aliases == {"Elves": handle.physical_name}
    assert await index_manager.index_exists("Elves")

    stored = json.loads(backend.meta["docindex:index:Elves"])
    assert stored["fingerprint"] == definition.fingerprint
    assert stored["physical_name"] == handle.physical_name
    assert await index_manager.get_definition("Elves") == definition


@pytest.mark.asyncio
async def test_create_existing_index_fails(index_manager, definition):
    await index_manager.create_index(definition)
    with pytest.raises(IndexAlreadyExists) as exc_info:
        await index_manager.create_index(definition)
    assert exc_info.value.index_name == "Elves"


@pytest.mark.asyncio
async def test_replace_swaps_alias_and_keeps_documents(index_manager, backend, definition):
    first = await index_manager.create_index(definition)
    await backend.json_set("Elf:1", {"first_name": "Buddy"})

    second = await index_manager.create_index(definition, replace=True)

    assert second.physical_name != first.physical_name
    assert second.replaced == first.physical_name
    assert backend.aliases["Elves"] == second.physical_name
    assert first.physical_name not in backend.indexes
    assert await backend.json_get("Elf:1") == {"first_name": "Buddy"}

    page = await backend.search("Elves", "@first_name:{buddy}")
    assert page.total == 1


@pytest.mark.asyncio
async def test_replace_of_non_aliased_index(index_manager, backend, definition):
    await backend.create_index("Elves", definition)

    handle = await index_manager.create_index(definition, replace=True)

    assert handle.replaced == "Elves"
    assert "Elves" not in backend.indexes
    assert backend.aliases["Elves"] == handle.physical_name


@pytest.mark.asyncio
async def test_build_timeout_discards_new_index(registry, fast_retry, definition):
    backend = SlowIndexingBackend()
    manager = IndexManager(backend, registry=registry, retry_policy=fast_retry,
                           ready_timeout=0.03, poll_interval=0.01)

    with pytest.raises(IndexBuildTimeout):
        await manager.create_index(definition)

    assert backend.indexes == {}
    assert backend.aliases == {}
    assert backend.meta == {}


@pytest.mark.asyncio
async def test_drop_index(index_manager, backend, definition):
    handle = await index_manager.create_index(definition)
    await backend.json_set("Elf:1", {"first_name": "Buddy"})

    assert await index_manager.drop_index("Elves") is True

    assert handle.physical_name not in backend.indexes
    assert "Elves" not in backend.aliases
    assert "docindex:index:Elves" not in backend.meta
    assert await backend.json_get("Elf:1") is not None


@pytest.mark.asyncio
async def test_drop_index_with_documents(index_manager, backend, definition):
    await index_manager.create_index(definition)
    await backend.json_set("Elf:1", {"first_name": "Buddy"})

    await index_manager.drop_index("Elves", delete_documents=True)

    assert await backend.json_get("Elf:1") is None


@pytest.mark.asyncio
async def test_drop_missing_index(index_manager):
    with pytest.raises(IndexNotFound):
        await index_manager.drop_index("Elves")
    assert await index_manager.drop_index("Elves", missing_ok=True) is False


@pytest.mark.asyncio
async def test_rebuild_index(index_manager, backend, definition):
    first = await index_manager.create_index(definition)

    rebuilt = await index_manager.rebuild_index("Elves")

    assert rebuilt.replaced == first.physical_name
    assert backend.aliases["Elves"] == rebuilt.physical_name


@pytest.mark.asyncio
async def test_rebuild_without_definition(index_manager):
    with pytest.raises(IndexNotFound):
        await index_manager.rebuild_index("Elves")


@pytest.mark.asyncio
async def test_ensure_index_creates_then_is_noop(index_manager, backend, elf_type):
    created = await index_manager.ensure_index(elf_type)
    commands = len(backend.commands)

    again = await index_manager.ensure_index(elf_type)

    assert created.created is True
    assert again.created is False
    assert again.physical_name == created.physical_name
    assert len(backend.commands) == commands


@pytest.mark.asyncio
async def test_ensure_index_rebuilds_on_schema_change(index_manager, backend, registry, elf_type):
    created = await index_manager.ensure_index(elf_type)

    changed = register_record_type(
        Elf,
        ELF_FIELDS,
        index_name="Elves",
        prefixes=["Elf", "Elf2"],
        registry=registry,
    )
    updated = await index_manager.ensure_index(changed)

    assert updated.created is True
    assert updated.replaced == created.physical_name
    assert backend.indexes[updated.physical_name].prefixes == ["Elf:", "Elf2:"]


@pytest.mark.asyncio
async def test_ensure_index_validates_before_backend_calls(index_manager, backend, registry):
    broken = register_record_type(
        Elf,
        [FieldSpec(name="age", kind=FieldKind.GEO)],
        index_name="Elves",
        registry=registry,
    )
    with pytest.raises(SchemaError):
        await index_manager.ensure_index(broken)
    assert backend.commands == []
