from .partition_index import PartitionIndex
from .store import KeyValueStore, StoreHealth, StoreStats, WriteResult

__all__ = ["KeyValueStore", "PartitionIndex", "StoreHealth", "StoreStats", "WriteResult"]
