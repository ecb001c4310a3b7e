import json
from unittest import mock

import httpx
import pytest

from ecsarango.connection import ArangoDbConnection
from ecsarango.session import ArangoError

BASE_URL = "http://localhost:8529"


class FakeArango:
    def __init__(self, db_name="game", has_collection=True):
        self.db_name = db_name
        self.has_collection = has_collection
        self.docs = {}
        self.requests = []
        self.batches = []
        self.queries = []
        self.fail_transport = False

    @staticmethod
    def _error(status, message):
        return httpx.Response(status, json={"error": True, "errorMessage": message})

    def handler(self, request):
        self.requests.append(request)
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)
        path = request.url.path
        if path == "/_open/auth":
            body = json.loads(request.content)
            if body == {"username": "user", "password": "password"}:
                return httpx.Response(200, json={"jwt": "token"})
            return self._error(401, "Wrong credentials")
        if request.headers.get("Authorization") != "bearer token":
            return self._error(401, "not authorized")
        prefix = "/_db/game"
        if not path.startswith(prefix + "/"):
            return self._error(404, "database not found")
        rest = path[len(prefix):]
        if rest == "/_api/database/current":
            return httpx.Response(200, json={"result": {"name": "game"}})
        if rest == "/_api/collection/entities":
            if self.has_collection:
                return httpx.Response(200, json={"name": "entities"})
            return self._error(404, "collection or view not found")
        if rest == "/_api/document/entities" and request.method == "POST":
            body = json.loads(request.content)
            key = body["_key"]
            if key in self.docs:
                return self._error(409, "unique constraint violated")
            self.docs[key] = body
            return httpx.Response(202, json={"_key": key})
        doc_prefix = "/_api/document/entities/"
        if rest.startswith(doc_prefix):
            key = rest[len(doc_prefix):]
            if key not in self.docs:
                return self._error(404, "document not found")
            if request.method == "GET":
                return httpx.Response(200, json=self.docs[key])
            if request.method == "PATCH":
                self.docs[key].update(json.loads(request.content))
                return httpx.Response(202, json={"_key": key})
            if request.method == "DELETE":
                del self.docs[key]
                return httpx.Response(202, json={"_key": key})
        if rest == "/_api/cursor" and request.method == "POST":
            self.queries.append(json.loads(request.content))
            return self._batch()
        if rest == "/_api/cursor/c1" and request.method == "PUT":
            return self._batch()
        return self._error(404, "unknown path")

    def _batch(self):
        batch = self.batches.pop(0)
        has_more = bool(self.batches)
        payload = {"result": batch, "hasMore": has_more}
        if has_more:
            payload["id"] = "c1"
        return httpx.Response(201, json=payload)


def make_connection(fake):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(fake.handler),
        base_url=BASE_URL,
        headers={"Authorization": "bearer token"},
    )
    return ArangoDbConnection(client, fake.db_name)


def patched_client(fake):
    real = httpx.AsyncClient

    def factory(*args, **kwargs):
        return real(*args, transport=httpx.MockTransport(fake.handler), **kwargs)

    return mock.patch("httpx.AsyncClient", factory)


@pytest.mark.asyncio
async def test_create_document_embeds_key():
    fake = FakeArango()
    conn = make_connection(fake)
    await conn.create_document("7", {"Health": {"value": 10}})
    assert fake.docs["7"] == {"Health": {"value": 10}, "_key": "7"}
    await conn.aclose()


@pytest.mark.asyncio
async def test_create_document_does_not_mutate_input():
    fake = FakeArango()
    conn = make_connection(fake)
    data = {"Health": {"value": 1}}
    await conn.create_document("1", data)
    assert data == {"Health": {"value": 1}}
    await conn.aclose()


@pytest.mark.asyncio
async def test_create_duplicate_raises():
    fake = FakeArango()
    conn = make_connection(fake)
    await conn.create_document("0", {})
    with pytest.raises(ArangoError, match="unique constraint violated"):
        await conn.create_document("0", {})
    await conn.aclose()


@pytest.mark.asyncio
async def test_update_document_patches_fields():
    fake = FakeArango()
    fake.docs["3"] = {"_key": "3", "Health": {"value": 1}}
    conn = make_connection(fake)
    await conn.update_document("3", {"Position": {"x": 1.0}})
    assert fake.docs["3"] == {"_key": "3", "Health": {"value": 1}, "Position": {"x": 1.0}}
    await conn.aclose()


@pytest.mark.asyncio
async def test_delete_document_removes_it():
    fake = FakeArango()
    fake.docs["5"] = {"_key": "5"}
    conn = make_connection(fake)
    await conn.delete_document("5")
    assert "5" not in fake.docs
    await conn.aclose()


@pytest.mark.asyncio
async def test_delete_missing_document_raises():
    fake = FakeArango()
    conn = make_connection(fake)
    with pytest.raises(ArangoError, match="document not found"):
        await conn.delete_document("99")
    await conn.aclose()


@pytest.mark.asyncio
async def test_missing_collection_raises_before_document_request():
    fake = FakeArango(has_collection=False)
    conn = make_connection(fake)
    with pytest.raises(ArangoError, match="collection or view not found"):
        await conn.create_document("0", {})
    assert [r.url.path for r in fake.requests] == ["/_db/game/_api/collection/entities"]
    assert fake.docs == {}
    await conn.aclose()


@pytest.mark.asyncio
async def test_fetch_component_returns_field_or_none():
    fake = FakeArango()
    fake.docs["k1"] = {"_key": "k1", "Health": {"value": 10}}
    conn = make_connection(fake)
    assert await conn.fetch_component("k1", "Health") == {"value": 10}
    assert await conn.fetch_component("k1", "Position") is None
    await conn.aclose()


@pytest.mark.asyncio
async def test_query_follows_cursor_and_keeps_strings():
    fake = FakeArango()
    fake.batches = [["e1", 5], ["e2", None, "e3"]]
    conn = make_connection(fake)
    aql = "FOR doc IN entities\n  RETURN doc._key"
    keys = await conn.query_arango(aql, {"min": 5})
    assert keys == ["e1", "e2", "e3"]
    assert fake.queries == [{"query": aql, "bindVars": {"min": 5}}]
    await conn.aclose()


@pytest.mark.asyncio
async def test_transport_failure_raises_arango_error():
    fake = FakeArango()
    fake.fail_transport = True
    conn = make_connection(fake)
    with pytest.raises(ArangoError) as info:
        await conn.fetch_component("k", "Health")
    assert str(info.value).startswith("ArangoDB error: ")
    await conn.aclose()


@pytest.mark.asyncio
async def test_connect_authenticates_and_selects_database():
    fake = FakeArango()
    password = "password"
    with patched_client(fake):
        conn = await ArangoDbConnection.connect(BASE_URL, "user", password=password, db_name="game")
    await conn.create_document("0", {})
    assert fake.docs["0"] == {"_key": "0"}
    assert await conn.fetch_component("0", "_key") == "0"
    assert fake.requests[0].url.path == "/_open/auth"
    assert fake.requests[1].url.path == "/_db/game/_api/database/current"
    await conn.aclose()


@pytest.mark.asyncio
async def test_connect_with_wrong_credentials_raises():
    fake = FakeArango()
    password = "secret"
    with patched_client(fake):
        with pytest.raises(ArangoError, match="Wrong credentials"):
            await ArangoDbConnection.connect(BASE_URL, "user", password=password, db_name="game")
    assert len(fake.requests) == 1


@pytest.mark.asyncio
async def test_connect_to_unknown_database_raises():
    fake = FakeArango()
    password = "password"
    with patched_client(fake):
        with pytest.raises(ArangoError, match="database not found"):
            await ArangoDbConnection.connect(BASE_URL, "user", password=password, db_name="other")


@pytest.mark.asyncio
async def test_aclose_closes_client():
    fake = FakeArango()
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake.handler), base_url=BASE_URL)
    conn = ArangoDbConnection(client, "game")
    await conn.aclose()
    assert client.is_closed is True