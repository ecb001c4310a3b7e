"""Builder for loading entities from the database into a session."""

from __future__ import annotations

import asyncio
from typing import Any

from .session import ArangoSession, DatabaseConnection, Entity


def component_name(component: Any) -> str:
    """Return the document field name used for a component.

    Accepts a plain string, or a type that defines ``component_name``
    (a string or a callable returning one); otherwise the type's name is used.
    """
    if isinstance(component, str):
        return component
    name = getattr(component, "component_name", None)
    if callable(name):
        name = name()
    if isinstance(name, str):
        return name
    fallback = getattr(component, "__name__", None)
    if not isinstance(fallback, str):
        raise TypeError(f"cannot determine a component name for {component!r}")
    return fallback


class ArangoQuery:
    """AQL query builder selecting which components and filters to apply."""

    def __init__(self, db: DatabaseConnection) -> None:
        self.db = db
        self.component_names: list[str] = []
        self.filters: list[str] = []

    def with_(self, component: Any) -> ArangoQuery:
        """Request loading a component."""
        self.component_names.append(component_name(component))
        return self

    def filter(self, clause: str) -> ArangoQuery:
        """Add a raw AQL filter clause such as ``doc.age > 10``."""
        self.filters.append(clause)
        return self

    def build_aql(self) -> tuple[str, dict[str, Any]]:
        """Return the AQL text and its bind variables."""
        lines = ["FOR doc IN entities"]
        if self.component_names:
            presences = " && ".join(f"doc.{name} != null" for name in self.component_names)
            lines.append(f"  FILTER {presences}")
        lines.extend(f"  FILTER {clause}" for clause in self.filters)
        lines.append("  RETURN doc._key")
        return "\n".join(lines), {}

    def fetch_ids(self) -> list[str]:
        """Run the query and return the matching document keys."""
        aql, bind_vars = self.build_aql()

        async def query() -> list[str]:
            return await self.db.query_arango(aql, bind_vars)

        return asyncio.run(query())

    def fetch_into(self, session: ArangoSession) -> list[Entity]:
        """Load matching entities into the session's world.

        Fetched component values are attached to each new entity as one
        mapping of component name to JSON value. Once the session holds
        loaded entities they are returned without querying again.
        """
        if session.loaded_entities:
            return sorted(session.loaded_entities)

        aql, bind_vars = self.build_aql()
        keys = session.run(self.db.query_arango(aql, bind_vars))
        for key in keys:
            if any(str(e.index) == key for e in session.loaded_entities):
                continue
            fetched: dict[str, Any] = {}
            for comp in self.component_names:
                value = session.run(self.db.fetch_component(key, comp))
                if value is not None:
                    fetched[comp] = value
            world = session.local_world
            entity = world.spawn(fetched) if fetched else world.spawn()
            session.mark_loaded(entity)
        return sorted(session.loaded_entities)