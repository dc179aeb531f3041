"""
Record cache store.

Single owner of the in-memory copies of the four record collections. Loads are
gated by per-collection staleness and de-duplicated while in flight; mutations
are written to the persistence gateway first and applied to memory only when
the write succeeded.

Mutations do not wait for, or block, an in-flight load of the same collection.
If a load started before a mutation resolves after it, the loaded list replaces
the mutated one in memory; storage still holds both effects and the next load
shows them.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict

from wellness_log.domain.errors import ClassifiedError
from wellness_log.domain.records import (
    CachedItem,
    Collection,
    key_field,
    parse_record,
    record_key,
)
from wellness_log.infrastructure.storage.gateway import PersistenceGateway
from wellness_log.services.error_classifier import classify_error
from wellness_log.utils.hashing import generate_record_id
from wellness_log.utils.parameters import CacheConfig, RecordIDConfig

logger = logging.getLogger(__name__)

GLOBAL = "global"
ALL = "all"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StoreEvent(BaseModel):
    """Notification sent to subscribers after a state transition."""

    collection: Collection | None
    action: str

    model_config = ConfigDict(frozen=True)


class CacheEntrySnapshot(BaseModel):
    """Read-only view of one collection's cache state."""

    collection: Collection
    records: tuple[Any, ...]
    last_updated: datetime | None
    is_stale: bool
    loading: bool
    error: Any = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class CacheEntry:
    """
    Mutable cache bookkeeping for one collection.

    ``is_stale`` is True when the collection was never loaded, when it was
    marked stale (explicit invalidation or a failed load), or when the last
    update is older than the freshness window. Only a successful load or a
    wipe clears it.
    """

    def __init__(self, collection: Collection) -> None:
        self.collection = collection
        self.records: tuple[CachedItem, ...] = ()
        self.last_updated: datetime | None = None
        self.marked_stale = True
        self.error: ClassifiedError | None = None

    def is_stale(self, now: datetime, freshness: timedelta) -> bool:
        if self.marked_stale or self.last_updated is None:
            return True
        return now - self.last_updated > freshness

    def mark_fresh(self, now: datetime) -> None:
        self.last_updated = now
        self.marked_stale = False

    def touch(self, now: datetime, freshness: timedelta) -> None:
        """Record a local write without clearing staleness."""
        if self.is_stale(now, freshness):
            self.marked_stale = True
        self.last_updated = now


class RecordCacheStore:
    """
    In-memory cache of the weight, blood pressure, habit record and habit
    definition collections.

    All operations are coroutines meant to run on a single event loop. Failures
    never escape as exceptions: they are classified and stored per collection
    (or in the ``global`` slot for wipes) and signalled through return values.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        config: CacheConfig | None = None,
        record_id_config: RecordIDConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize record cache store.

        Args:
            gateway: Persistence gateway holding the durable copy.
            config: Cache configuration (freshness window).
            record_id_config: Settings for generated record IDs.
            clock: Returns the current time; injectable for tests.
        """
        self.gateway = gateway
        self.config = config or CacheConfig()
        self.record_id_config = record_id_config or RecordIDConfig()
        self._clock = clock
        self._freshness = timedelta(seconds=self.config.freshness_seconds)
        self._entries: dict[Collection, CacheEntry] = {c: CacheEntry(c) for c in Collection}
        self._inflight: dict[Collection, asyncio.Task[bool]] = {}
        self._wiping = False
        self._global_error: ClassifiedError | None = None
        self._subscribers: list[Callable[[StoreEvent], None]] = []

    # Read access

    def records(self, collection: Collection) -> tuple[CachedItem, ...]:
        """Return the cached items of a collection as an immutable tuple."""
        return self._entries[Collection(collection)].records

    def entry(self, collection: Collection) -> CacheEntrySnapshot:
        """Return a snapshot of a collection's records and cache state."""
        collection = Collection(collection)
        entry = self._entries[collection]
        return CacheEntrySnapshot(
            collection=collection,
            records=entry.records,
            last_updated=entry.last_updated,
            is_stale=entry.is_stale(self._clock(), self._freshness),
            loading=collection in self._inflight,
            error=entry.error,
        )

    def is_stale(self, collection: Collection) -> bool:
        return self._entries[Collection(collection)].is_stale(self._clock(), self._freshness)

    def is_loading(self, collection: Collection | None = None) -> bool:
        """
        Return whether a load is in flight.

        Without a collection, returns the aggregate flag: True while any
        collection is loading or a wipe is running.
        """
        if collection is None:
            return bool(self._inflight) or self._wiping
        return Collection(collection) in self._inflight

    @property
    def loading(self) -> bool:
        return self.is_loading()

    def error_for(self, slot: Collection | str) -> ClassifiedError | None:
        """Return the classified error stored for a collection or the ``global`` slot."""
        if slot == GLOBAL:
            return self._global_error
        return self._entries[Collection(slot)].error

    @property
    def error(self) -> ClassifiedError | None:
        """Aggregate error: the global error, else the first collection error."""
        if self._global_error is not None:
            return self._global_error
        for collection in Collection:
            if self._entries[collection].error is not None:
                return self._entries[collection].error
        return None

    def records_of_day(self, collection: Collection, date: str) -> list[CachedItem]:
        """Return the cached records of a collection logged on ``date``."""
        return [r for r in self.records(collection) if getattr(r, "date", None) == date]

    def is_recorded(self, collection: Collection, date: str) -> bool:
        return bool(self.records_of_day(collection, date))

    def latest_record(self, collection: Collection) -> CachedItem | None:
        """Return the most recently dated record of a collection, or None."""
        dated = [r for r in self.records(collection) if hasattr(r, "date")]
        if not dated:
            return None
        return max(dated, key=lambda r: (r.date, r.time))

    def record_counts(self) -> dict[str, int]:
        """Return item counts per collection plus the total of measurement records."""
        counts = {c.value: len(self._entries[c].records) for c in Collection}
        counts["total"] = sum(
            counts[c.value]
            for c in (Collection.WEIGHT, Collection.BLOOD_PRESSURE, Collection.HABIT_RECORDS)
        )
        return counts

    # Notifications

    def subscribe(self, callback: Callable[[StoreEvent], None]) -> Callable[[], None]:
        """
        Register a callback fired after each state transition.

        Returns:
            Function that removes the callback.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, collection: Collection | None, action: str) -> None:
        event = StoreEvent(collection=collection, action=action)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Subscriber failed while handling {action} event")

    def _record_error(
        self, slot: Collection | str, error: Any, message: str
    ) -> ClassifiedError:
        classified = classify_error(error, message)
        if slot == GLOBAL:
            self._global_error = classified
            collection = None
        else:
            collection = Collection(slot)
            self._entries[collection].error = classified
        logger.error(
            f"{message} [{classified.kind.value}, retryable={classified.retryable}]: {error!r}"
        )
        self._notify(collection, "failed")
        return classified

    # Loading

    async def ensure_loaded(self, collection: Collection) -> bool:
        """
        Make sure a collection's cached list is fresh.

        Serves cached data when the entry is not stale. Otherwise fetches the
        collection from the gateway; a caller arriving while that fetch is in
        flight waits for the same fetch instead of starting another.

        Returns:
            True if the cache holds data from a successful load, False if the
            load failed (the previous list is kept and the entry stays stale).
        """
        collection = Collection(collection)

        task = self._inflight.get(collection)
        if task is None:
            if not self._entries[collection].is_stale(self._clock(), self._freshness):
                return True
            task = asyncio.ensure_future(self._load(collection))
            self._inflight[collection] = task

        return await asyncio.shield(task)

    async def _load(self, collection: Collection) -> bool:
        entry = self._entries[collection]
        entry.error = None
        logger.debug(f"Loading {collection.value} from storage")

        try:
            items = await self.gateway.get_all(collection)
        except Exception as e:
            entry.marked_stale = True
            self._record_error(collection, e, f"Failed to load {collection.value} records")
            return False
        finally:
            self._inflight.pop(collection, None)

        entry.records = tuple(items)
        entry.mark_fresh(self._clock())
        logger.info(f"Loaded {len(entry.records)} {collection.value} records")
        self._notify(collection, "loaded")
        return True

    async def load_all(self) -> bool:
        """
        Load every collection concurrently.

        A failure in one collection does not stop the others; the call returns
        once all four have settled.

        Returns:
            True if every collection is loaded, False if any load failed.
        """
        results = await asyncio.gather(
            *(self.ensure_loaded(c) for c in Collection), return_exceptions=True
        )
        for collection, result in zip(Collection, results):
            if isinstance(result, BaseException):
                self._record_error(
                    collection, result, f"Failed to load {collection.value} records"
                )
        return all(result is True for result in results)

    def invalidate(self, target: Collection | str = ALL) -> None:
        """
        Mark one collection, or ``"all"``, stale without discarding cached data.

        The next ``ensure_loaded`` refetches while readers keep seeing the
        last-known list.
        """
        collections = list(Collection) if target == ALL else [Collection(target)]
        for collection in collections:
            self._entries[collection].marked_stale = True
            self._notify(collection, "invalidated")

    async def refresh_all(self) -> bool:
        """Invalidate every collection and reload them."""
        self.invalidate(ALL)
        return await self.load_all()

    # Mutations

    async def add(self, collection: Collection, fields: dict[str, Any]) -> CachedItem | None:
        """
        Create a record with a freshly generated key and persist it.

        Args:
            collection: Target collection.
            fields: Record fields without the key.

        Returns:
            The created record, or None if the write failed.

        Raises:
            ValidationError: If ``fields`` do not form a valid record.
        """
        collection = Collection(collection)
        key = key_field(collection)
        data = {k: v for k, v in fields.items() if k != key}
        data[key] = generate_record_id(collection.value, self.record_id_config)
        item = parse_record(collection, data)

        try:
            await self.gateway.insert(collection, item)
        except Exception as e:
            self._record_error(collection, e, f"Failed to add {collection.value} record")
            return None

        entry = self._entries[collection]
        entry.records = entry.records + (item,)
        entry.touch(self._clock(), self._freshness)
        logger.debug(f"Added {collection.value} record {record_key(item)}")
        self._notify(collection, "added")
        return item

    async def update(self, collection: Collection, item: CachedItem | dict[str, Any]) -> bool:
        """
        Persist a changed record and replace it in place.

        Returns:
            True on success, False if the write failed.

        Raises:
            ValidationError: If ``item`` is not a valid record for the collection.
        """
        collection = Collection(collection)
        if isinstance(item, dict):
            item = parse_record(collection, item)
        else:
            item = parse_record(collection, item.model_dump())

        try:
            await self.gateway.update(collection, item)
        except Exception as e:
            self._record_error(collection, e, f"Failed to update {collection.value} record")
            return False

        key = record_key(item)
        entry = self._entries[collection]
        entry.records = tuple(item if record_key(r) == key else r for r in entry.records)
        entry.touch(self._clock(), self._freshness)
        self._notify(collection, "updated")
        return True

    async def delete(self, collection: Collection, key: str) -> bool:
        """
        Delete a record by key.

        Returns:
            True on success, False if the delete failed.
        """
        collection = Collection(collection)

        try:
            await self.gateway.delete_by_id(collection, key)
        except Exception as e:
            self._record_error(collection, e, f"Failed to delete {collection.value} record")
            return False

        entry = self._entries[collection]
        entry.records = tuple(r for r in entry.records if record_key(r) != key)
        entry.touch(self._clock(), self._freshness)
        self._notify(collection, "deleted")
        return True

    async def wipe_all(self) -> bool:
        """
        Delete everything from storage and empty the cache.

        On success every collection is empty, fresh and error-free, so the next
        ``ensure_loaded`` does not refetch. On failure nothing in memory changes.

        Returns:
            True on success, False if the wipe failed.
        """
        self._wiping = True
        self._global_error = None

        try:
            await self.gateway.wipe()
        except Exception as e:
            self._record_error(GLOBAL, e, "Failed to delete all data")
            return False
        finally:
            self._wiping = False

        now = self._clock()
        for entry in self._entries.values():
            entry.records = ()
            entry.error = None
            entry.mark_fresh(now)

        logger.info("Deleted all records")
        self._notify(None, "wiped")
        return True

    # Errors

    def clear_error(self, slot: Collection | str) -> None:
        """Clear the stored error of a collection or of the ``global`` slot."""
        if slot == GLOBAL:
            self._global_error = None
        else:
            self._entries[Collection(slot)].error = None

    def clear_all_errors(self) -> None:
        self._global_error = None
        for entry in self._entries.values():
            entry.error = None

    def snapshot(self) -> dict[Collection, CacheEntrySnapshot]:
        """Return snapshots of every collection."""
        return {c: self.entry(c) for c in Collection}
