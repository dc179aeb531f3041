"""In-memory persistence gateway, used for tests and throwaway sessions."""

import logging

from wellness_log.domain.records import CachedItem, Collection, record_key
from wellness_log.utils.exceptions import RecordConstraintError

logger = logging.getLogger(__name__)


class InMemoryGateway:
    """Keeps each collection in an insertion-ordered dict keyed by record key."""

    def __init__(self) -> None:
        self._data: dict[Collection, dict[str, CachedItem]] = {c: {} for c in Collection}

    async def get_all(self, collection: Collection) -> list[CachedItem]:
        return list(self._data[Collection(collection)].values())

    async def insert(self, collection: Collection, item: CachedItem) -> None:
        bucket = self._data[Collection(collection)]
        key = record_key(item)
        if key in bucket:
            raise RecordConstraintError(f"Key already exists in {collection}: {key}")
        bucket[key] = item

    async def update(self, collection: Collection, item: CachedItem) -> None:
        bucket = self._data[Collection(collection)]
        key = record_key(item)
        if key not in bucket:
            raise RecordConstraintError(f"Key not found in {collection}: {key}")
        bucket[key] = item

    async def delete_by_id(self, collection: Collection, key: str) -> None:
        bucket = self._data[Collection(collection)]
        if key not in bucket:
            raise RecordConstraintError(f"Key not found in {collection}: {key}")
        del bucket[key]

    async def wipe(self) -> None:
        for bucket in self._data.values():
            bucket.clear()
        logger.info("Wiped in-memory storage")
