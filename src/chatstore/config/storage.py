from typing import Literal

from pydantic import BaseModel, Field

# --- Snapshot storage backends ---


class FSSnapshotSettings(BaseModel):
    # Interpreted relative to AppSettings.root in the factory
    base_dir: str = "."
    items_file: str = "items.json"
    groups_file: str = "groups.json"
    lock_file: str = ".chatstore.lock"
    # how long open() waits for another process to release the data dir
    lock_timeout_s: float = 10.0


class StorageSettings(BaseModel):
    # which backend persists the item table + partition index
    backend: Literal["fs", "memory"] = "fs"

    fs: FSSnapshotSettings = FSSnapshotSettings()

    # --- flush behaviour ---
    flush_timeout_s: float | None = Field(
        default=None,
        description="Abort a flush that takes longer than this; the store stays dirty.",
    )
    flush_retries: int = 2  # extra attempts for recoverable IO errors
    flush_retry_delay_s: float = 0.05
    raise_on_flush_error: bool = Field(
        default=False,
        description="Raise StorageIOError to callers instead of only reporting it.",
    )
