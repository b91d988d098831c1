"""Redis backend tests against a mocked client."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.commands.search.result import Result
from redis.exceptions import ConnectionError as RedisConnectionError, ResponseError

from docindex.errors import BackendError, IndexAlreadyExists, IndexNotFound, TransientBackendError
from docindex.indexing.schema import describe
from docindex.models.index import IndexDefinition
from docindex.storage.redis_client import RedisBackend, RedisConfig


@pytest.fixture
def search_api():
    return AsyncMock()


@pytest.fixture
def json_api():
    return AsyncMock()


@pytest.fixture
def client(search_api, json_api):
    client = AsyncMock()
    client.ft = MagicMock(return_value=search_api)
    client.json = MagicMock(return_value=json_api)
    return client


@pytest.fixture
def redis_backend(client):
    return RedisBackend(RedisConfig(url="redis://localhost:6379"), client=client)


@pytest.fixture
def definition(elf_type, registry):
    return IndexDefinition.from_record_type(elf_type, describe(elf_type, registry))


def _schema_args(definition):
    return {field.as_name: field.redis_args() for field in RedisBackend.build_schema(definition)}


def test_schema_fields(definition):
    schema = _schema_args(definition)

    assert list(schema)[0] == "id"
    assert schema["id"] == ["$.id", "AS", "id", "TAG", "SEPARATOR", "|"]
    assert schema["age"] == ["$.age", "AS", "age", "NUMERIC", "SORTABLE"]
    assert schema["home_address_location"] == ["$.home_address.location", "AS", "home_address_location", "GEO"]
    assert schema["home_address_street_address"][3] == "TEXT"
    assert schema["work_address_postal_code"][0] == "$.work_address.postal_code"


def test_query_arguments():
    query = RedisBackend.build_query("@age:[1000 +inf]", offset=5, limit=2, sort_by="age", ascending=False)
    assert query.get_args() == [
        "@age:[1000 +inf]", "SORTBY", "age", "DESC", "DIALECT", 2, "LIMIT", 5, 2,
    ]

    plain = RedisBackend.build_query("*")
    assert plain.get_args() == ["*", "DIALECT", 2, "LIMIT", 0, 10]


@pytest.mark.asyncio
async def test_create_index(redis_backend, client, search_api, definition):
    await redis_backend.create_index("Elves-abc", definition)

    client.ft.assert_called_with("Elves-abc")
    fields = search_api.create_index.await_args.args[0]
    index_definition = search_api.create_index.await_args.kwargs["definition"]
    assert len(fields) == len(definition.fields)
    assert index_definition.args[:5] == ["ON", "JSON", "PREFIX", 1, "Elf:"]


@pytest.mark.asyncio
async def test_create_existing_index(redis_backend, search_api, definition):
    search_api.create_index.side_effect = ResponseError("Index already exists")
    with pytest.raises(IndexAlreadyExists):
        await redis_backend.create_index("Elves-abc", definition)


@pytest.mark.asyncio
async def test_search_decodes_documents(redis_backend, client, search_api):
    search_api.search.return_value = Result(
        [
            2,
            "Elf:1", ["$", json.dumps({"first_name": "Buddy"})],
            "Elf:2", ["$", json.dumps({"first_name": "Bernard"})],
        ],
        hascontent=True,
    )

    page = await redis_backend.search("Elves", "@age:[1000 +inf]", offset=5, limit=2,
                                      sort_by="age", ascending=False)

    client.ft.assert_called_with("Elves")
    query = search_api.search.await_args.args[0]
    assert query.query_string() == "@age:[1000 +inf]"
    assert page.total == 2
    assert page.hits == [("Elf:1", {"first_name": "Buddy"}), ("Elf:2", {"first_name": "Bernard"})]


def test_native_resp3_search_reply():
    page = RedisBackend.parse_search_result({
        "total_results": 1,
        "results": [{"id": b"Elf:1", "extra_attributes": {b"$": b'{"first_name":"Buddy"}'}}],
    })
    assert page.total == 1
    assert page.hits == [("Elf:1", {"first_name": "Buddy"})]


@pytest.mark.asyncio
async def test_search_without_hits(redis_backend, search_api):
    search_api.search.return_value = Result([0], hascontent=True)
    page = await redis_backend.search("Elves", "*")
    assert page.total == 0
    assert page.hits == []


@pytest.mark.asyncio
async def test_search_missing_index(redis_backend, search_api):
    search_api.search.side_effect = ResponseError("Elves: no such index")
    with pytest.raises(IndexNotFound):
        await redis_backend.search("Elves", "*")


@pytest.mark.asyncio
async def test_index_info(redis_backend, search_api):
    search_api.info.return_value = {
        "index_name": "Elves-abc", "num_docs": "2", "indexing": "0", "percent_indexed": "1",
    }
    info = await redis_backend.index_info("Elves")
    assert info == {"index_name": "Elves-abc", "indexing": False, "percent_indexed": 1.0, "num_docs": 2}

    search_api.info.side_effect = ResponseError("Unknown index name")
    assert await redis_backend.index_info("Elves") is None


@pytest.mark.asyncio
async def test_json_commands(redis_backend, json_api):
    await redis_backend.json_set("Elf:1", {"first_name": "Buddy", "age": 30})
    json_api.set.assert_awaited_with("Elf:1", "$", {"first_name": "Buddy", "age": 30})

    json_api.get.return_value = [{"first_name": "Buddy", "age": 30}]
    assert await redis_backend.json_get("Elf:1") == {"first_name": "Buddy", "age": 30}
    json_api.get.assert_awaited_with("Elf:1", "$")

    json_api.get.return_value = None
    assert await redis_backend.json_get("Elf:2") is None


@pytest.mark.asyncio
async def test_drop_and_alias_commands(redis_backend, client, search_api):
    await redis_backend.drop_index("Elves-abc", delete_documents=True)
    client.ft.assert_called_with("Elves-abc")
    search_api.dropindex.assert_called_with(delete_documents=True)

    await redis_backend.alias_update("Elves", "Elves-def")
    client.ft.assert_called_with("Elves-def")
    search_api.aliasupdate.assert_awaited_with("Elves")

    search_api.aliasdel.side_effect = ResponseError("Alias does not exist")
    with pytest.raises(IndexNotFound):
        await redis_backend.alias_delete("Elves")


@pytest.mark.asyncio
async def test_metadata_commands(redis_backend, client):
    client.get.return_value = '{"fingerprint": "abc"}'
    assert await redis_backend.get_meta("docindex:index:Elves") == '{"fingerprint": "abc"}'

    await redis_backend.set_meta("docindex:index:Elves", "{}")
    client.set.assert_awaited_with("docindex:index:Elves", "{}")

    client.delete.return_value = 1
    assert await redis_backend.delete("Elf:1") is True


@pytest.mark.asyncio
async def test_connection_errors_are_transient(redis_backend, client, json_api):
    json_api.get.side_effect = RedisConnectionError("Connection refused")
    with pytest.raises(TransientBackendError):
        await redis_backend.json_get("Elf:1")

    client.ping.side_effect = RedisConnectionError("Connection refused")
    assert await redis_backend.ping() is False


@pytest.mark.asyncio
async def test_other_rejections_are_backend_errors(redis_backend, search_api):
    search_api.search.side_effect = ResponseError("Syntax error at offset 3")
    with pytest.raises(BackendError) as exc_info:
        await redis_backend.search("Elves", "@@")
    assert not isinstance(exc_info.value, TransientBackendError)
    assert exc_info.value.operation == "search"


@pytest.mark.asyncio
async def test_close(redis_backend, client):
    await redis_backend.close()
    client.aclose.assert_awaited_once()
    assert redis_backend.is_connected() is False
