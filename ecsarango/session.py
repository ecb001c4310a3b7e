"""Local entity cache with change tracking and commit logic against a document store."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

T = TypeVar("T")


class ArangoError(Exception):
    """Raised when a database operation fails."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"ArangoDB error: {self.message}"


class DatabaseConnection(ABC):
    """Asynchronous document-store operations used by a session."""

    @abstractmethod
    async def create_document(self, entity_key: str, data: Any) -> None:
        """Create a new document (entity) with the given key."""

    @abstractmethod
    async def update_document(self, entity_key: str, patch: Any) -> None:
        """Update an existing document."""

    @abstractmethod
    async def delete_document(self, entity_key: str) -> None:
        """Delete a document (entity)."""

    @abstractmethod
    async def query_arango(self, aql: str, bind_vars: Mapping[str, Any]) -> list[str]:
        """Execute a raw AQL query returning document keys."""

    @abstractmethod
    async def fetch_component(self, entity_key: str, comp_name: str) -> Any | None:
        """Fetch one component's JSON value, or None if it is missing."""


@dataclass(frozen=True, order=True)
class Entity:
    """Handle to an entity in a World; indices are reused with a new generation."""

    index: int
    generation: int = 0


class World:
    """A minimal entity store holding components per entity."""

    def __init__(self) -> None:
        self._components: dict[Entity, tuple[Any, ...]] = {}
        self._generations: list[int] = []
        self._free: list[int] = []

    def spawn(self, *args: Any) -> Entity:
        """Create an entity carrying the given components and return its handle."""
        if self._free:
            index = self._free.pop()
            generation = self._generations[index]
        else:
            index = len(self._generations)
            self._generations.append(0)
            generation = 0
        entity = Entity(index, generation)
        self._components[entity] = args
        return entity

    def despawn(self, entity: Entity) -> bool:
        """Remove an entity; return whether it existed."""
        if entity not in self._components:
            return False
        del self._components[entity]
        self._generations[entity.index] += 1
        self._free.append(entity.index)
        return True

    def components(self, entity: Entity) -> tuple[Any, ...]:
        """Return the components attached to an entity."""
        try:
            return self._components[entity]
        except KeyError:
            raise KeyError(f"entity {entity} does not exist") from None

    def __len__(self) -> int:
        return len(self._components)

    def __contains__(self, entity: object) -> bool:
        return entity in self._components


async def _await(awaitable: Awaitable[T]) -> T:
    return await awaitable


class ArangoSession:
    """A unit of work: local world cache, change tracking and an event loop."""

    def __init__(self, db: DatabaseConnection) -> None:
        self.local_world = World()
        self.db = db
        self.dirty_entities: set[Entity] = set()
        self.despawned_entities: set[Entity] = set()
        self.loaded_entities: set[Entity] = set()
        self._runner = asyncio.Runner()

    def mark_dirty(self, entity: Entity) -> None:
        """Mark an entity as needing persistence."""
        self.dirty_entities.add(entity)

    def mark_despawned(self, entity: Entity) -> None:
        """Mark an entity as having been removed."""
        self.despawned_entities.add(entity)

    def mark_loaded(self, entity: Entity) -> None:
        """Mark an entity as already present in the database."""
        self.loaded_entities.add(entity)

    def run(self, awaitable: Awaitable[T]) -> T:
        """Drive an awaitable to completion on the session's event loop."""
        return self._runner.run(_await(awaitable))

    def commit(self) -> None:
        """Persist despawned, new and changed entities to the database."""
        to_delete = sorted(self.despawned_entities)
        self.despawned_entities.clear()
        deleted = set(to_delete)
        for entity in to_delete:
            self.run(self.db.delete_document(str(entity.index)))

        to_write = sorted(self.dirty_entities - deleted)
        self.dirty_entities.clear()
        for entity in to_write:
            key = str(entity.index)
            data: dict[str, Any] = {}
            if entity in self.loaded_entities:
                self.run(self.db.update_document(key, data))
            else:
                self.run(self.db.create_document(key, data))

    def close(self) -> None:
        """Shut down the session's event loop."""
        self._runner.close()

    def __enter__(self) -> ArangoSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()