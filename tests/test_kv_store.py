import asyncio
import errno

import pytest

from chatstore.contracts.storage.snapshot import Snapshot
from chatstore.storage.errors import InvalidPayloadError, StorageIOError, StoreClosedError
from chatstore.storage.kv.store import KeyValueStore
from chatstore.storage.snapshot.inmem_snapshot import InMemorySnapshotPersistence


class FlakyPersistence(InMemorySnapshotPersistence):
    """
    In-memory persistence that raises the queued errors on save(), one per
    call, then behaves normally.
    """

    def __init__(self, errors=None, delay_s: float = 0.0):
        super().__init__()
        self.errors = list(errors or [])
        self.delay_s = delay_s
        self.attempts = 0

    async def save(self, snapshot: Snapshot) -> None:
        self.attempts += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.errors:
            raise self.errors.pop(0)
        await super().save(snapshot)


async def _open_store(persistence=None, **kwargs) -> KeyValueStore:
    store = KeyValueStore(persistence or InMemorySnapshotPersistence(), **kwargs)
    await store.open()
    return store


def chat(chat_id: str, user_id: str, title: str = "hi") -> dict:
    return {"id": chat_id, "userId": user_id, "title": title}


@pytest.mark.asyncio
async def test_set_then_get_and_partition_listing():
    store = await _open_store()

    payload = {"id": "c1", "userId": "u1", "title": "hi", "messages": [{"role": "user", "content": "x"}]}
    res = await store.set("chat", "c1", payload, "userId")
    assert res.durable is True
    assert res.existed is False

    assert await store.get("chat", "c1") == payload
    assert await store.get_by_partition("chat", "u1") == [payload]


@pytest.mark.asyncio
async def test_get_missing_is_none_and_returns_copies():
    store = await _open_store()
    assert await store.get("chat", "nope") is None
    assert await store.get_by_partition("chat", "nobody") == []

    await store.set("chat", "c1", chat("c1", "u1"), "userId")
    loaded = await store.get("chat", "c1")
    loaded["title"] = "mutated"
    assert (await store.get("chat", "c1"))["title"] == "hi"


@pytest.mark.asyncio
async def test_concrete_scenario_order_and_bulk_delete():
    store = await _open_store()
    c1 = {"id": "c1", "userId": "u1", "title": "hi"}
    c2 = {"id": "c2", "userId": "u1", "title": "yo"}

    await store.set("chat", "c1", c1, "userId")
    await store.set("chat", "c2", c2, "userId")
    assert await store.get_by_partition("chat", "u1") == [c1, c2]

    res = await store.delete_by_partition("chat", "u1")
    assert res.durable is True
    assert res.count == 2
    assert await store.get_by_partition("chat", "u1") == []
    assert await store.get("chat", "c1") is None
    assert await store.get("chat", "c2") is None


@pytest.mark.asyncio
async def test_repeated_set_does_not_duplicate_index_entries():
    persistence = InMemorySnapshotPersistence()
    store = await _open_store(persistence)

    for _ in range(3):
        await store.set("chat", "c1", chat("c1", "u1"), "userId")

    assert len(await store.get_by_partition("chat", "u1")) == 1
    snap = await persistence.load()
    assert snap.groups == {"chat": {"u1": ["c1"]}}


@pytest.mark.asyncio
async def test_update_moves_item_between_partitions():
    store = await _open_store()
    await store.set("chat", "c1", chat("c1", "u1"), "userId")
    res = await store.set("chat", "c1", chat("c1", "u2"), "userId")
    assert res.existed is True

    assert await store.get_by_partition("chat", "u1") == []
    assert [c["id"] for c in await store.get_by_partition("chat", "u2")] == ["c1"]


@pytest.mark.asyncio
async def test_payload_without_partition_field_is_stored_but_not_indexed():
    persistence = InMemorySnapshotPersistence()
    store = await _open_store(persistence)
    await store.set("chat", "c1", {"id": "c1", "title": "orphan"}, "userId")

    assert await store.get("chat", "c1") == {"id": "c1", "title": "orphan"}
    assert (await persistence.load()).groups == {}


@pytest.mark.asyncio
async def test_non_string_partition_values_are_stringified():
    store = await _open_store()
    await store.set("order", "o1", {"id": "o1", "customer": 42}, "customer")
    assert [o["id"] for o in await store.get_by_partition("order", "42")] == ["o1"]


@pytest.mark.asyncio
async def test_delete_prunes_bucket_with_and_without_field():
    store = await _open_store()
    await store.set("chat", "c1", chat("c1", "u1"), "userId")
    await store.set("chat", "c2", chat("c2", "u1"), "userId")

    res = await store.delete("chat", "c1", "userId")
    assert res.existed is True
    # no partition field given: membership is still found
    res = await store.delete("chat", "c2")
    assert res.existed is True

    assert await store.get("chat", "c1") is None
    assert await store.get("chat", "c2") is None
    assert store._index.ids("chat", "u1") == []


@pytest.mark.asyncio
async def test_delete_missing_is_a_flushed_noop():
    persistence = InMemorySnapshotPersistence()
    store = await _open_store(persistence)
    res = await store.delete("chat", "ghost", "userId")
    assert res.durable is True
    assert res.existed is False
    assert persistence.saves == 1


@pytest.mark.asyncio
async def test_partition_listing_tolerates_skew():
    # index lists c2, but the item table lost it (e.g. crash between documents)
    persistence = InMemorySnapshotPersistence()
    await persistence.save(
        Snapshot(
            items={"chat:c1": chat("c1", "u1"), "chat:c3": chat("c3", "u1")},
            groups={"chat": {"u1": ["c1", "c2", "c3"]}},
        )
    )
    store = await _open_store(persistence)

    assert [c["id"] for c in await store.get_by_partition("chat", "u1")] == ["c1", "c3"]

    res = await store.delete_by_partition("chat", "u1")
    assert res.count == 2
    assert await store.get_by_partition("chat", "u1") == []


@pytest.mark.asyncio
async def test_concurrent_sets_are_serialized():
    persistence = InMemorySnapshotPersistence()
    store = await _open_store(persistence)

    ids = [f"c{i}" for i in range(50)]
    await asyncio.gather(*(store.set("chat", i, chat(i, "u1"), "userId") for i in ids))
    # same key twice at once must not duplicate either
    await asyncio.gather(*(store.set("chat", "c0", chat("c0", "u1"), "userId") for _ in range(5)))

    listed = [c["id"] for c in await store.get_by_partition("chat", "u1")]
    assert sorted(listed) == sorted(ids)
    assert len(listed) == len(set(listed))

    # the last flush reflects the full in-memory state
    snap = await persistence.load()
    assert len(snap.items) == 50
    assert sorted(snap.groups["chat"]["u1"]) == sorted(ids)


@pytest.mark.asyncio
async def test_bulk_delete_waits_for_flush_and_races_cleanly():
    persistence = FlakyPersistence(delay_s=0.01)
    store = await _open_store(persistence)
    for i in range(5):
        await store.set("chat", f"c{i}", chat(f"c{i}", "u1"), "userId")

    await asyncio.gather(
        store.delete_by_partition("chat", "u1"),
        store.delete("chat", "c3", "userId"),
    )

    snap = await persistence.load()
    assert snap.items == {}
    assert "u1" not in snap.groups.get("chat", {})


@pytest.mark.asyncio
async def test_stats_counts_per_group():
    persistence = InMemorySnapshotPersistence()
    store = await _open_store(persistence)
    await store.set("chat", "c1", chat("c1", "u1"), "userId")
    await store.set("chat", "c2", chat("c2", "u2"), "userId")
    await store.set("user", "a@b.c", {"email": "a@b.c"})

    stats = await store.stats()
    assert stats.records == {"chat": 2, "user": 1}
    assert stats.db_size == await persistence.size()
    assert stats.db_size > 0

    doc = stats.to_dict()
    assert set(doc) == {"dbSize", "records", "updated"}
    assert doc["updated"].endswith("Z")
    assert store.groups() == ["chat", "user"]


@pytest.mark.asyncio
async def test_fatal_flush_error_is_reported_not_raised():
    persistence = FlakyPersistence(errors=[OSError(errno.ENOSPC, "No space left on device")])
    store = await _open_store(persistence, flush_retries=3)

    res = await store.set("chat", "c1", chat("c1", "u1"), "userId")
    assert res.durable is False
    assert res.error is not None
    assert res.error.recoverable is False
    # fatal errors are not retried
    assert persistence.attempts == 1

    # the write is still visible in memory
    assert await store.get("chat", "c1") is not None
    health = store.health()
    assert health.dirty is True
    assert health.failed_flushes == 1
    assert "No space left" in health.last_error

    # next mutation rewrites everything and clears the flag
    await store.set("chat", "c2", chat("c2", "u1"), "userId")
    assert store.health().dirty is False
    assert set((await persistence.load()).items) == {"chat:c1", "chat:c2"}


@pytest.mark.asyncio
async def test_recoverable_flush_error_is_retried():
    persistence = FlakyPersistence(errors=[OSError(errno.EAGAIN, "try again")])
    store = await _open_store(persistence, flush_retries=2, flush_retry_delay_s=0)

    res = await store.set("chat", "c1", chat("c1", "u1"), "userId")
    assert res.durable is True
    assert persistence.attempts == 2
    assert store.health().dirty is False


@pytest.mark.asyncio
async def test_flush_timeout_marks_store_dirty():
    persistence = FlakyPersistence(delay_s=0.5)
    store = await _open_store(persistence, flush_timeout_s=0.01, flush_retries=0)

    res = await store.set("chat", "c1", chat("c1", "u1"), "userId")
    assert res.durable is False
    assert res.error.recoverable is True
    assert store.health().dirty is True

    persistence.delay_s = 0
    res = await store.flush()
    assert res.durable is True
    assert store.health().dirty is False


@pytest.mark.asyncio
async def test_strict_mode_raises_after_applying_change():
    persistence = FlakyPersistence(errors=[PermissionError(errno.EACCES, "denied")])
    store = await _open_store(persistence, raise_on_flush_error=True)

    with pytest.raises(StorageIOError) as exc:
        await store.set("chat", "c1", chat("c1", "u1"), "userId")
    assert exc.value.recoverable is False
    assert await store.get("chat", "c1") is not None


@pytest.mark.asyncio
async def test_mutations_require_open_store():
    store = KeyValueStore(InMemorySnapshotPersistence())
    assert await store.get("chat", "c1") is None
    with pytest.raises(StoreClosedError):
        await store.set("chat", "c1", {})

    async with store:
        await store.set("chat", "c1", {"id": "c1"})
        assert store.is_open
    assert not store.is_open
    with pytest.raises(StoreClosedError):
        await store.delete("chat", "c1")


@pytest.mark.asyncio
async def test_close_flushes_pending_changes():
    persistence = FlakyPersistence(errors=[OSError(errno.EIO, "io")])
    store = await _open_store(persistence, flush_retries=0)
    await store.set("chat", "c1", chat("c1", "u1"), "userId")
    assert store.health().dirty is True

    await store.close()
    assert "chat:c1" in (await persistence.load()).items


@pytest.mark.asyncio
async def test_unencodable_payload_is_rejected_and_later_writes_stay_durable():
    persistence = InMemorySnapshotPersistence()
    store = await _open_store(persistence)

    with pytest.raises(InvalidPayloadError):
        await store.set("chat", "bad", {"id": "bad", "userId": "u1", "at": {1, 2}}, "userId")
    assert await store.get("chat", "bad") is None
    assert await store.get_by_partition("chat", "u1") == []
    assert persistence.saves == 0

    res = await store.set("chat", "c1", chat("c1", "u1"), "userId")
    assert res.durable is True
    assert store.health().dirty is False
    assert (await persistence.load()).items == {"chat:c1": chat("c1", "u1")}


@pytest.mark.asyncio
async def test_payload_is_held_in_its_persisted_form():
    persistence = InMemorySnapshotPersistence()
    store = await _open_store(persistence)

    await store.set("chat", "c1", {"id": "c1", "userId": "u1", "tags": ("a", "b"), "meta": {1: "x"}}, "userId")
    expected = {"id": "c1", "userId": "u1", "tags": ["a", "b"], "meta": {"1": "x"}}
    assert await store.get("chat", "c1") == expected
    assert (await persistence.load()).items["chat:c1"] == expected


@pytest.mark.asyncio
async def test_bulk_delete_sweeps_stray_copies_in_sibling_buckets():
    # legacy index lists c1 under two users
    persistence = InMemorySnapshotPersistence()
    await persistence.save(
        Snapshot(
            items={"chat:c1": chat("c1", "u1"), "chat:c2": chat("c2", "u2")},
            groups={"chat": {"u1": ["c1"], "u2": ["c1", "c2"]}},
        )
    )
    store = await _open_store(persistence)

    res = await store.delete_by_partition("chat", "u1")
    assert res.count == 1
    assert [c["id"] for c in await store.get_by_partition("chat", "u2")] == ["c2"]
    assert (await persistence.load()).groups == {"chat": {"u2": ["c2"]}}


@pytest.mark.asyncio
async def test_bulk_delete_counts_null_payloads():
    persistence = InMemorySnapshotPersistence()
    await persistence.save(
        Snapshot(
            items={"chat:c1": None, "chat:c2": chat("c2", "u1")},
            groups={"chat": {"u1": ["c1", "c2"]}},
        )
    )
    store = await _open_store(persistence)

    res = await store.delete_by_partition("chat", "u1")
    assert res.count == 2
    assert len(store) == 0
