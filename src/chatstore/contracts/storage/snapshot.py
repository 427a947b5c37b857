from dataclasses import dataclass, field
from typing import Any, Protocol

"""
Snapshot persistence interface for the key-value store.

A snapshot is the pair {item table, partition index}. Each half is stored as
its own document; there is no transaction spanning both.

Typical implementations include:
- FSSnapshotPersistence: two JSON files on local disk (durable, default)
- InMemorySnapshotPersistence: encoded bytes kept in memory (tests, ephemeral use)
"""


@dataclass
class Snapshot:
    items: dict[str, Any] = field(default_factory=dict)
    groups: dict[str, dict[str, list[str]]] = field(default_factory=dict)


class SnapshotPersistence(Protocol):
    async def open(self) -> None: ...
    async def close(self) -> None: ...

    async def load(self) -> Snapshot: ...
    async def save(self, snapshot: Snapshot) -> None: ...

    # combined size of both documents as stored, in bytes
    async def size(self) -> int: ...
