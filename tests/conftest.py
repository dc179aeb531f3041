"""Shared fixtures and fakes for wellness log tests."""

import asyncio
from collections import defaultdict
from datetime import datetime, timedelta, timezone

import pytest

from wellness_log.domain.records import CachedItem, Collection
from wellness_log.infrastructure.storage.memory_gateway import InMemoryGateway


class FakeClock:
    """Manually advanced clock."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeGateway(InMemoryGateway):
    """
    In-memory gateway that counts loads and can be told to fail or stall.

    ``get_all`` snapshots the collection before waiting on ``gate``, so a
    stalled load returns what storage held when it started.
    """

    def __init__(self) -> None:
        super().__init__()
        self.get_all_calls: dict[Collection, int] = defaultdict(int)
        self.load_failures: dict[Collection, BaseException] = {}
        self.failures: dict[str, BaseException] = {}
        self.gate: asyncio.Event | None = None

    def seed(self, collection: Collection, *items: CachedItem) -> None:
        for item in items:
            self._data[collection][item.id if hasattr(item, "id") else item.field_id] = item

    async def get_all(self, collection: Collection) -> list[CachedItem]:
        collection = Collection(collection)
        self.get_all_calls[collection] += 1
        items = await super().get_all(collection)
        if self.gate is not None:
            await self.gate.wait()
        if collection in self.load_failures:
            raise self.load_failures[collection]
        return items

    async def insert(self, collection: Collection, item: CachedItem) -> None:
        if "insert" in self.failures:
            raise self.failures["insert"]
        await super().insert(collection, item)

    async def update(self, collection: Collection, item: CachedItem) -> None:
        if "update" in self.failures:
            raise self.failures["update"]
        await super().update(collection, item)

    async def delete_by_id(self, collection: Collection, key: str) -> None:
        if "delete" in self.failures:
            raise self.failures["delete"]
        await super().delete_by_id(collection, key)

    async def wipe(self) -> None:
        if "wipe" in self.failures:
            raise self.failures["wipe"]
        await super().wipe()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
