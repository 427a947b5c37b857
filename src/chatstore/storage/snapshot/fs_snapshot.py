from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
import threading
import time
from typing import IO

from chatstore.contracts.storage.snapshot import Snapshot, SnapshotPersistence
from chatstore.storage.codec import GROUPS, ITEMS, decode_document, encode_document
from chatstore.storage.errors import StoreLockedError

logger = logging.getLogger(__name__)


def _try_lock(f: IO[str]) -> None:
    if os.name == "nt":
        import msvcrt  # type: ignore

        # lock 1 byte
        f.seek(0)
        msvcrt.locking(f.fileno(), msvcrt.LK_NBLCK, 1)
    else:
        import fcntl  # type: ignore

        fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


def _unlock(f: IO[str]) -> None:
    if os.name == "nt":
        import msvcrt  # type: ignore

        f.seek(0)
        msvcrt.locking(f.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl  # type: ignore

        fcntl.flock(f.fileno(), fcntl.LOCK_UN)


class FSSnapshotPersistence(SnapshotPersistence):
    """
    Item table + partition index as two JSON files in one directory.

    - Each file is replaced atomically (write <name>.tmp, then os.replace).
    - Items are written before groups: a crash in between leaves index
      entries pointing at missing items, which readers skip.
    - An exclusive advisory lock on the directory is held while open, so a
      second process cannot interleave its own snapshots.
    """

    def __init__(
        self,
        base_dir: str,
        *,
        items_file: str = "items.json",
        groups_file: str = "groups.json",
        lock_file: str = ".chatstore.lock",
        lock_timeout_s: float = 10.0,
        poll_s: float = 0.1,
    ):
        self.base_dir = Path(base_dir).resolve()
        self.items_path = self.base_dir / items_file
        self.groups_path = self.base_dir / groups_file
        self.lock_path = self.base_dir / lock_file
        self._lock_timeout_s = lock_timeout_s
        self._poll_s = poll_s
        self._lock_fh: IO[str] | None = None
        self._io_lock = threading.Lock()

    # --------- lifecycle ---------
    def _acquire(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        f = open(self.lock_path, "a+")  # noqa: SIM115 # keep handle open to hold the lock
        start = time.time()
        while True:
            try:
                _try_lock(f)
                break
            except OSError as e:
                if time.time() - start > self._lock_timeout_s:
                    f.close()
                    raise StoreLockedError(f"Timed out acquiring lock for data dir: {self.base_dir}") from e
                time.sleep(self._poll_s)
        self._lock_fh = f

    def _release(self) -> None:
        f = self._lock_fh
        if f is None:
            return
        self._lock_fh = None
        try:
            _unlock(f)
        finally:
            f.close()

    async def open(self) -> None:
        if self._lock_fh is not None:
            return
        await asyncio.to_thread(self._acquire)
        logger.debug("opened snapshot dir %s", self.base_dir)

    async def close(self) -> None:
        await asyncio.to_thread(self._release)

    # --------- IO ---------
    @staticmethod
    def _read_bytes(path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    @staticmethod
    def _write_atomic(path: Path, data: bytes) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)

    async def load(self) -> Snapshot:
        def _read() -> tuple[bytes | None, bytes | None]:
            with self._io_lock:
                return self._read_bytes(self.items_path), self._read_bytes(self.groups_path)

        try:
            raw_items, raw_groups = await asyncio.to_thread(_read)
        except OSError as e:
            # unreadable counts as absent; the next flush rewrites both files
            logger.warning("could not read snapshot from %s: %s; starting empty", self.base_dir, e)
            return Snapshot()

        return Snapshot(
            items=decode_document(ITEMS, raw_items),
            groups=decode_document(GROUPS, raw_groups),
        )

    async def save(self, snapshot: Snapshot) -> None:
        # encode before the first await so the bytes match the caller's state
        items = encode_document(snapshot.items)
        groups = encode_document(snapshot.groups)

        def _write() -> None:
            with self._io_lock:
                self.base_dir.mkdir(parents=True, exist_ok=True)
                self._write_atomic(self.items_path, items)
                self._write_atomic(self.groups_path, groups)

        await asyncio.to_thread(_write)

    async def size(self) -> int:
        def _stat() -> int:
            total = 0
            for p in (self.items_path, self.groups_path):
                try:
                    total += p.stat().st_size
                except OSError:
                    pass
            return total

        return await asyncio.to_thread(_stat)
