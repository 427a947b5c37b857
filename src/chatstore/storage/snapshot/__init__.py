from .fs_snapshot import FSSnapshotPersistence
from .inmem_snapshot import InMemorySnapshotPersistence

__all__ = ["FSSnapshotPersistence", "InMemorySnapshotPersistence"]
