__version__ = "0.1.0"

# Store
from .storage.kv.store import KeyValueStore, StoreHealth, StoreStats, WriteResult
from .storage.kv.partition_index import PartitionIndex
from .storage.factory import build_store

# Persistence backends
from .storage.snapshot import FSSnapshotPersistence, InMemorySnapshotPersistence

# Errors
from .storage.errors import (
    InvalidPayloadError,
    MalformedDocumentError,
    NotFound,
    StorageIOError,
    StoreClosedError,
    StoreError,
    StoreLockedError,
    Unauthorized,
)

# Typed accessors
from .services.records import ChatRecords, UserRecords, get_stats

__all__ = [
    # Store
    "KeyValueStore", "StoreHealth", "StoreStats", "WriteResult", "PartitionIndex", "build_store",
    # Persistence
    "FSSnapshotPersistence", "InMemorySnapshotPersistence",
    # Errors
    "StoreError", "NotFound", "Unauthorized", "MalformedDocumentError", "InvalidPayloadError",
    "StorageIOError", "StoreClosedError", "StoreLockedError",
    # Accessors
    "ChatRecords", "UserRecords", "get_stats",
]
