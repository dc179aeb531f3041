"""
JSON file persistence gateway.

Stores each collection as a JSON array in ``<data_dir>/<collection>.json``.
File IO runs in a worker thread so the event loop is never blocked. Writes go
to a temporary file first and are moved into place, so a crash never leaves a
half-written collection behind.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

from wellness_log.domain.records import CachedItem, Collection, parse_record, record_key
from wellness_log.utils.exceptions import RecordConstraintError, StorageVersionError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class JsonFileGateway:
    """
    File-backed gateway with one JSON document per collection.

    Each document has the shape ``{"version": 1, "items": [...]}``. A document
    written by another schema version raises ``StorageVersionError``.
    """

    def __init__(self, data_dir: str | Path) -> None:
        """
        Initialize JSON gateway.

        Args:
            data_dir: Directory holding the collection files (created on first write).
        """
        self.data_dir = Path(data_dir)
        self._lock = asyncio.Lock()

    def _path(self, collection: Collection) -> Path:
        return self.data_dir / f"{Collection(collection).value}.json"

    def _read(self, collection: Collection) -> list[CachedItem]:
        path = self._path(collection)
        if not path.exists():
            return []

        with open(path, encoding="utf-8") as f:
            document = json.load(f)

        version = document.get("version") if isinstance(document, dict) else None
        if version != SCHEMA_VERSION:
            raise StorageVersionError(
                f"{path} has schema version {version!r}, expected {SCHEMA_VERSION}"
            )

        return [parse_record(collection, item) for item in document.get("items", [])]

    def _write(self, collection: Collection, items: list[CachedItem]) -> None:
        path = self._path(collection)
        path.parent.mkdir(parents=True, exist_ok=True)

        document: dict[str, Any] = {
            "version": SCHEMA_VERSION,
            "items": [item.model_dump(mode="json") for item in items],
        }

        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)

    async def get_all(self, collection: Collection) -> list[CachedItem]:
        items = await asyncio.to_thread(self._read, collection)
        logger.debug(f"Read {len(items)} items from {self._path(collection)}")
        return items

    async def insert(self, collection: Collection, item: CachedItem) -> None:
        async with self._lock:
            items = await asyncio.to_thread(self._read, collection)
            key = record_key(item)
            if any(record_key(existing) == key for existing in items):
                raise RecordConstraintError(f"Key already exists in {collection}: {key}")
            items.append(item)
            await asyncio.to_thread(self._write, collection, items)

    async def update(self, collection: Collection, item: CachedItem) -> None:
        async with self._lock:
            items = await asyncio.to_thread(self._read, collection)
            key = record_key(item)
            for index, existing in enumerate(items):
                if record_key(existing) == key:
                    items[index] = item
                    break
            else:
                raise RecordConstraintError(f"Key not found in {collection}: {key}")
            await asyncio.to_thread(self._write, collection, items)

    async def delete_by_id(self, collection: Collection, key: str) -> None:
        async with self._lock:
            items = await asyncio.to_thread(self._read, collection)
            remaining = [item for item in items if record_key(item) != key]
            if len(remaining) == len(items):
                raise RecordConstraintError(f"Key not found in {collection}: {key}")
            await asyncio.to_thread(self._write, collection, remaining)

    async def wipe(self) -> None:
        async with self._lock:
            for collection in Collection:
                await asyncio.to_thread(self._write, collection, [])
        logger.info(f"Wiped storage in {self.data_dir}")
