from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any

from chatstore.contracts.storage.snapshot import Snapshot, SnapshotPersistence
from chatstore.storage.codec import normalize_payload
from chatstore.storage.errors import StorageIOError, StoreClosedError

from .partition_index import PartitionIndex

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _partition_value(payload: Any, partition_field: str) -> str | None:
    if not isinstance(payload, dict):
        return None
    value = payload.get(partition_field)
    if value is None:
        return None
    # JSON object keys are strings
    return value if isinstance(value, str) else str(value)


@dataclass
class WriteResult:
    """
    Outcome of a mutation.

    The in-memory change is always applied; `durable` says whether the
    snapshot that contains it reached stable storage.
    """

    durable: bool
    existed: bool = False
    count: int = 0
    error: StorageIOError | None = None


@dataclass
class StoreStats:
    db_size: int
    records: dict[str, int]
    updated: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "dbSize": self.db_size,
            "records": dict(self.records),
            "updated": self.updated.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        }


@dataclass
class StoreHealth:
    open: bool
    dirty: bool
    items: int
    flushes: int = 0
    failed_flushes: int = 0
    last_flush_at: datetime | None = None
    last_error: str | None = None
    last_error_recoverable: bool | None = None


class KeyValueStore:
    """
    In-memory item table + partition index, mirrored to a SnapshotPersistence.

    - Items are keyed "<group>:<id>"; payloads are opaque JSON values.
    - Reads never raise and return copies.
    - Every mutation and the flush that follows it run under one asyncio.Lock
      (single writer), so documents are persisted in logical completion order.
    - Flush failures never undo the in-memory change. They are reported in the
      WriteResult, logged, and kept in health() until a later flush succeeds.
    """

    def __init__(
        self,
        persistence: SnapshotPersistence,
        *,
        flush_timeout_s: float | None = None,
        flush_retries: int = 2,
        flush_retry_delay_s: float = 0.05,
        raise_on_flush_error: bool = False,
    ):
        self._persistence = persistence
        self._flush_timeout_s = flush_timeout_s
        self._flush_retries = max(0, flush_retries)
        self._flush_retry_delay_s = flush_retry_delay_s
        self._raise_on_flush_error = raise_on_flush_error

        self._items: dict[str, Any] = {}
        self._index = PartitionIndex()
        self._lock = asyncio.Lock()
        self._open = False

        self._dirty = False
        self._flushes = 0
        self._failed_flushes = 0
        self._last_flush_at: datetime | None = None
        self._last_error: StorageIOError | None = None

    # --------- lifecycle ---------
    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> KeyValueStore:
        if self._open:
            return self
        await self._persistence.open()
        snap = await self._persistence.load()
        async with self._lock:
            self._items = snap.items
            self._index = PartitionIndex(snap.groups)
            self._open = True
        logger.info("store opened with %d items", len(self._items))
        return self

    async def close(self) -> None:
        if not self._open:
            return
        async with self._lock:
            if self._dirty:
                # last chance to make pending changes durable
                await self._flush_locked(raise_errors=False)
            self._open = False
        await self._persistence.close()
        logger.info("store closed")

    async def __aenter__(self) -> KeyValueStore:
        return await self.open()

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def _require_open(self) -> None:
        if not self._open:
            raise StoreClosedError("store is not open; call open() first")

    @staticmethod
    def _key(group: str, item_id: str) -> str:
        return f"{group}:{item_id}"

    # --------- reads ---------
    async def get(self, group: str, item_id: str) -> Any | None:
        item = self._items.get(self._key(group, item_id))
        if item is None:
            return None
        return copy.deepcopy(item)

    async def get_by_partition(self, group: str, partition_key: str) -> list[Any]:
        out: list[Any] = []
        for item_id in self._index.ids(group, partition_key):
            item = self._items.get(self._key(group, item_id))
            if item is None:
                # index/table skew: skip rather than fail the whole listing
                logger.debug("partition %s/%s lists missing item %s", group, partition_key, item_id)
                continue
            out.append(copy.deepcopy(item))
        return out

    # --------- mutations ---------
    async def set(
        self,
        group: str,
        item_id: str,
        payload: Any,
        partition_field: str | None = None,
    ) -> WriteResult:
        self._require_open()
        key = self._key(group, item_id)
        # encode up front; a rejected payload leaves the store untouched
        item = normalize_payload(payload)
        async with self._lock:
            prev = self._items.get(key)
            self._items[key] = item

            if partition_field is not None:
                new_pv = _partition_value(item, partition_field)
                old_pv = _partition_value(prev, partition_field) if prev is not None else None
                if old_pv is not None and old_pv != new_pv:
                    self._index.remove(group, old_pv, item_id)
                if new_pv is not None:
                    self._index.add(group, new_pv, item_id)
                else:
                    logger.debug("%s has no %r; stored without a partition", key, partition_field)

            return await self._flush_locked(existed=prev is not None)

    async def delete(
        self,
        group: str,
        item_id: str,
        partition_field: str | None = None,
    ) -> WriteResult:
        self._require_open()
        key = self._key(group, item_id)
        async with self._lock:
            existed = key in self._items
            item = self._items.pop(key, None)

            if existed and partition_field is not None:
                pv = _partition_value(item, partition_field)
                if pv is not None:
                    self._index.remove(group, pv, item_id)
            # sweep the group so a missing or wrong field name never orphans an entry
            self._index.discard(group, item_id)

            return await self._flush_locked(existed=existed)

    async def delete_by_partition(self, group: str, partition_key: str) -> WriteResult:
        self._require_open()
        async with self._lock:
            ids = self._index.ids(group, partition_key)
            removed = 0
            for item_id in ids:
                key = self._key(group, item_id)
                # ids already gone from the table are fine
                if key in self._items:
                    del self._items[key]
                    removed += 1
                # stray copies in sibling buckets
                self._index.discard(group, item_id)
            existed = self._index.drop_bucket(group, partition_key)

            result = await self._flush_locked(existed=existed)
            result.count = removed
            logger.debug("deleted %d items from %s/%s", removed, group, partition_key)
            return result

    async def flush(self) -> WriteResult:
        """Rewrite both documents from memory (e.g. to retry after a failure)."""
        self._require_open()
        async with self._lock:
            return await self._flush_locked()

    async def _flush_locked(self, *, existed: bool = False, raise_errors: bool | None = None) -> WriteResult:
        raise_errors = self._raise_on_flush_error if raise_errors is None else raise_errors
        attempts = 1 + self._flush_retries
        err: StorageIOError | None = None

        for attempt in range(attempts):
            snap = Snapshot(items=self._items, groups=self._index.view())
            try:
                if self._flush_timeout_s is not None:
                    await asyncio.wait_for(self._persistence.save(snap), self._flush_timeout_s)
                else:
                    await self._persistence.save(snap)
            except Exception as e:
                err = StorageIOError.from_exception(e)
                if err.recoverable and attempt < attempts - 1:
                    logger.warning("flush attempt %d/%d failed: %s; retrying", attempt + 1, attempts, err)
                    await asyncio.sleep(self._flush_retry_delay_s * (attempt + 1))
                    continue
                break
            else:
                self._dirty = False
                self._last_error = None
                self._flushes += 1
                self._last_flush_at = _now()
                return WriteResult(durable=True, existed=existed)

        assert err is not None
        self._dirty = True
        self._last_error = err
        self._failed_flushes += 1
        logger.error(
            "flush failed (recoverable=%s): %s; in-memory state is ahead of storage",
            err.recoverable,
            err,
        )
        if raise_errors:
            raise err
        return WriteResult(durable=False, existed=existed, error=err)

    # --------- introspection ---------
    def groups(self) -> list[str]:
        return sorted({k.split(":", 1)[0] for k in self._items})

    def __len__(self) -> int:
        return len(self._items)

    async def stats(self) -> StoreStats:
        db_size = await self._persistence.size()
        records: dict[str, int] = {}
        for key in self._items:
            group = key.split(":", 1)[0]
            records[group] = records.get(group, 0) + 1
        return StoreStats(db_size=db_size, records=records, updated=_now())

    def health(self) -> StoreHealth:
        err = self._last_error
        return StoreHealth(
            open=self._open,
            dirty=self._dirty,
            items=len(self._items),
            flushes=self._flushes,
            failed_flushes=self._failed_flushes,
            last_flush_at=self._last_flush_at,
            last_error=str(err) if err is not None else None,
            last_error_recoverable=err.recoverable if err is not None else None,
        )
