from __future__ import annotations

from chatstore.contracts.storage.snapshot import Snapshot, SnapshotPersistence
from chatstore.storage.codec import GROUPS, ITEMS, decode_document, encode_document


class InMemorySnapshotPersistence(SnapshotPersistence):
    """
    Keeps the encoded documents in memory.

    Not persisted across process restarts; `size()` reports the encoded
    byte length so stats behave like the filesystem backend.
    """

    def __init__(self) -> None:
        self.items_doc: bytes | None = None
        self.groups_doc: bytes | None = None
        self.saves = 0

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def load(self) -> Snapshot:
        return Snapshot(
            items=decode_document(ITEMS, self.items_doc),
            groups=decode_document(GROUPS, self.groups_doc),
        )

    async def save(self, snapshot: Snapshot) -> None:
        self.items_doc = encode_document(snapshot.items)
        self.groups_doc = encode_document(snapshot.groups)
        self.saves += 1

    async def size(self) -> int:
        return len(self.items_doc or b"") + len(self.groups_doc or b"")
