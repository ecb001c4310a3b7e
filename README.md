# ecsarango

A small unit-of-work layer. It keeps a local world of entities and tracks
which entities changed. It then writes those changes as documents to the
`entities` collection of an ArangoDB database.

## Installation

```
pip install ecsarango
```

This installs `httpx`, which the HTTP backend uses.

## Modules

### `ecsarango.session`

- `Entity(index, generation=0)` is a frozen, ordered handle. When an entity is
  despawned, its index can be reused with a higher generation.
- `World` is a local entity store.
  - `spawn(*components)` returns a new `Entity` that carries the components.
  - `despawn(entity)` removes the entity and returns whether it existed.
  - `components(entity)` returns the entity's components as a tuple. It raises
    `KeyError` for an unknown entity.
  - `len(world)` and `entity in world` also work.
- `DatabaseConnection` is the abstract async interface that a backend
  implements. It has five coroutine methods:
  - `create_document(entity_key, data)`
  - `update_document(entity_key, patch)`
  - `delete_document(entity_key)`
  - `query_arango(aql, bind_vars)`, which returns a list of keys
  - `fetch_component(entity_key, comp_name)`, which returns a value or `None`
- `ArangoSession(db)` holds these attributes:
  - `local_world`
  - `db`
  - `dirty_entities`, `despawned_entities` and `loaded_entities`, which are
    sets of entities

  Its methods are:
  - `mark_dirty`, `mark_despawned` and `mark_loaded` add an entity to the
    matching set.
  - `run(awaitable)` drives an awaitable on the session's own event loop.
  - `commit()` first deletes every despawned entity. It then writes every
    dirty entity that was not deleted in that same commit. A loaded entity
    gets `update_document` and a new entity gets `create_document`.
    Entities are handled in ascending order. The document key is
    `str(entity.index)`. Both tracking sets are cleared.
  - `close()` shuts down the event loop. The session is also a context
    manager and closes on exit.
- `ArangoError` is raised when a database operation fails. `str()` of it
  gives `ArangoDB error: <details>`, and the detail text is in `.message`.

### `ecsarango.query`

`ArangoQuery(db)` builds AQL over the `entities` collection:

- `with_(component)` requests a component. It returns the query, so calls
  can be chained.
- `filter(clause)` adds a raw AQL filter clause. It also returns the query.
- `build_aql()` returns `(aql_text, bind_vars)`. The bind variables are
  always an empty dict.
- `fetch_ids()` runs the query with `asyncio.run` and returns the matching
  keys.
- `fetch_into(session)` works in three steps:
  1. It runs the query on the session's loop.
  2. For each key it spawns a new entity in `session.local_world` and marks
     it loaded. The component values that `fetch_component` returned are
     attached to that entity as one dict that maps component name to value.
  3. It returns the session's loaded entities, sorted.

  If the session already holds loaded entities, `fetch_into` returns them
  without querying.

`component_name(component)` gives the field name that a component has in
AQL:

- A string is used as it is.
- Otherwise the component's `component_name` attribute is used, if it is a
  string or a callable that returns one.
- Otherwise the class's `__name__` is used.

### `ecsarango.connection`

`ArangoDbConnection` implements `DatabaseConnection` over ArangoDB's HTTP API
with an `httpx.AsyncClient`.

- `await ArangoDbConnection.connect(url, user, password, db_name)` logs in
  through `/_open/auth`, stores the JWT, and checks that the database exists.
- `ArangoDbConnection(client, db_name)` wraps an existing client.
- `create_document` adds `_key` to dict bodies.
- `query_arango` follows cursor batches. It keeps only the string results.
- `await aclose()` closes the client.

## Example

```python
from ecsarango.query import ArangoQuery
from ecsarango.session import ArangoSession, DatabaseConnection


class MemoryDb(DatabaseConnection):
    def __init__(self):
        self.docs = {}

    async def create_document(self, entity_key, data):
        self.docs[entity_key] = dict(data)

    async def update_document(self, entity_key, patch):
        self.docs[entity_key].update(patch)

    async def delete_document(self, entity_key):
        self.docs.pop(entity_key, None)

    async def query_arango(self, aql, bind_vars):
        return list(self.docs)

    async def fetch_component(self, entity_key, comp_name):
        return self.docs[entity_key].get(comp_name)


db = MemoryDb()
with ArangoSession(db) as session:
    entity = session.local_world.spawn()
    session.mark_dirty(entity)
    session.commit()  # db.docs == {"0": {}}


class Health:
    pass


query = ArangoQuery(db).with_(Health).filter("doc.Health.value > 5")
aql, bind_vars = query.build_aql()
# FOR doc IN entities
#   FILTER doc.Health != null
#   FILTER doc.Health.value > 5
#   RETURN doc._key
```

Against a real server:

```python
import asyncio

from ecsarango.connection import ArangoDbConnection


async def main():
    password = "password"
    db = await ArangoDbConnection.connect(
        "http://localhost:8529", "root", password, "game"
    )
    try:
        keys = await db.query_arango("FOR doc IN entities RETURN doc._key", {})
        print(keys)
    finally:
        await db.aclose()


asyncio.run(main())
```

## Limitations

- `commit()` does not serialize component data. Created and updated documents
  are always sent as the empty object `{}`.
- `fetch_into` does not turn fetched JSON into component objects. The raw
  values stay in one dict per entity.
- `ArangoDbConnection` does not create the database or the `entities`
  collection. Both must already exist.

## Running the tests

```
pip install -e ".[test]"
pytest
```