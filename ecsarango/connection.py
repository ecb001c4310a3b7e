"""ArangoDB backend for ``DatabaseConnection`` over the HTTP API."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx

from .session import ArangoError, DatabaseConnection

COLLECTION = "entities"


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("errorMessage"), str):
        return f"{payload['errorMessage']} (HTTP {response.status_code})"
    return f"HTTP {response.status_code}: {response.text}"


async def _send(client: httpx.AsyncClient, method: str, path: str, **kwargs: Any) -> Any:
    try:
        response = await client.request(method, path, **kwargs)
    except httpx.HTTPError as exc:
        raise ArangoError(str(exc)) from exc
    if response.is_error:
        raise ArangoError(_error_message(response))
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise ArangoError(f"invalid JSON in response: {exc}") from exc


class ArangoDbConnection(DatabaseConnection):
    """Persists entity documents in the ``entities`` collection of one database."""

    def __init__(self, client: httpx.AsyncClient, db_name: str) -> None:
        self._client = client
        self.db_name = db_name
        self._db_path = f"/_db/{quote(db_name, safe='')}"

    @classmethod
    async def connect(
        cls, url: str, user: str, password: str, db_name: str
    ) -> ArangoDbConnection:
        """Authenticate with a JWT and select the named database."""
        client = httpx.AsyncClient(base_url=url.rstrip("/"))
        try:
            body = await _send(
                client,
                "POST",
                "/_open/auth",
                json={"username": user, "password": password},
            )
            jwt = body.get("jwt") if isinstance(body, dict) else None
            if not isinstance(jwt, str):
                raise ArangoError("authentication response carried no token")
            client.headers["Authorization"] = f"bearer {jwt}"
            connection = cls(client, db_name)
            await connection._request("GET", "/_api/database/current")
        except BaseException:
            await client.aclose()
            raise
        return connection

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        return await _send(self._client, method, f"{self._db_path}{path}", **kwargs)

    async def _collection(self) -> None:
        await self._request("GET", f"/_api/collection/{COLLECTION}")

    def _document_path(self, entity_key: str) -> str:
        return f"/_api/document/{COLLECTION}/{quote(entity_key, safe='')}"

    async def create_document(self, entity_key: str, data: Any) -> None:
        body = {**data, "_key": entity_key} if isinstance(data, dict) else data
        await self._collection()
        await self._request("POST", f"/_api/document/{COLLECTION}", json=body)

    async def update_document(self, entity_key: str, patch: Any) -> None:
        await self._collection()
        await self._request("PATCH", self._document_path(entity_key), json=patch)

    async def delete_document(self, entity_key: str) -> None:
        await self._collection()
        await self._request("DELETE", self._document_path(entity_key))

    async def query_arango(self, aql: str, bind_vars: Mapping[str, Any]) -> list[str]:
        batch = await self._request(
            "POST", "/_api/cursor", json={"query": aql, "bindVars": dict(bind_vars)}
        )
        results: list[Any] = []
        while True:
            if not isinstance(batch, dict):
                raise ArangoError("unexpected cursor response")
            results.extend(batch.get("result") or [])
            cursor_id = batch.get("id")
            if not batch.get("hasMore") or cursor_id is None:
                break
            batch = await self._request(
                "PUT", f"/_api/cursor/{quote(str(cursor_id), safe='')}"
            )
        return [value for value in results if isinstance(value, str)]

    async def fetch_component(self, entity_key: str, comp_name: str) -> Any | None:
        await self._collection()
        document = await self._request("GET", self._document_path(entity_key))
        if not isinstance(document, dict):
            raise ArangoError("unexpected document response")
        return document.get(comp_name)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()