import os

from chatstore.config.config import AppSettings
from chatstore.contracts.storage.snapshot import SnapshotPersistence
from chatstore.storage.kv.store import KeyValueStore
from chatstore.storage.snapshot.fs_snapshot import FSSnapshotPersistence
from chatstore.storage.snapshot.inmem_snapshot import InMemorySnapshotPersistence


def build_snapshot_persistence(cfg: AppSettings) -> SnapshotPersistence:
    """
    Decide which snapshot backend to use based on AppSettings.storage.
    """
    st_cfg = cfg.storage
    root = os.path.abspath(cfg.data_root())

    if st_cfg.backend == "fs":
        fs = st_cfg.fs
        return FSSnapshotPersistence(
            os.path.join(root, fs.base_dir),
            items_file=fs.items_file,
            groups_file=fs.groups_file,
            lock_file=fs.lock_file,
            lock_timeout_s=fs.lock_timeout_s,
        )

    if st_cfg.backend == "memory":
        return InMemorySnapshotPersistence()

    raise ValueError(f"Unknown storage backend: {st_cfg.backend!r}")


def build_store(cfg: AppSettings, *, persistence: SnapshotPersistence | None = None) -> KeyValueStore:
    """Construct (but do not open) the key-value store."""
    st_cfg = cfg.storage
    return KeyValueStore(
        persistence or build_snapshot_persistence(cfg),
        flush_timeout_s=st_cfg.flush_timeout_s,
        flush_retries=st_cfg.flush_retries,
        flush_retry_delay_s=st_cfg.flush_retry_delay_s,
        raise_on_flush_error=st_cfg.raise_on_flush_error,
    )
