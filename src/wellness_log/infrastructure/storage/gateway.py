"""
Persistence gateway contract.

The record cache talks to durable storage only through this protocol. Any
method may raise an implementation-defined failure; the cache classifies it.
"""

from typing import Protocol, runtime_checkable

from wellness_log.domain.records import CachedItem, Collection


@runtime_checkable
class PersistenceGateway(Protocol):
    """Durable key-ordered storage, one keyspace per collection."""

    async def get_all(self, collection: Collection) -> list[CachedItem]:
        """Return every item in the collection, order unspecified."""
        ...

    async def insert(self, collection: Collection, item: CachedItem) -> None:
        """Store a new item. Fails if its key already exists."""
        ...

    async def update(self, collection: Collection, item: CachedItem) -> None:
        """Replace an item by key. Fails if the key does not exist."""
        ...

    async def delete_by_id(self, collection: Collection, key: str) -> None:
        """Remove an item by key. Fails if the key does not exist."""
        ...

    async def wipe(self) -> None:
        """Delete every item in every collection."""
        ...
