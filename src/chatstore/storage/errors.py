from __future__ import annotations

import asyncio
import errno

# errno values worth another attempt; anything else is treated as fatal
_RECOVERABLE_ERRNOS = frozenset(
    code
    for code in (
        getattr(errno, "EAGAIN", None),
        getattr(errno, "EWOULDBLOCK", None),
        getattr(errno, "EINTR", None),
        getattr(errno, "EBUSY", None),
        getattr(errno, "ETIMEDOUT", None),
    )
    if code is not None
)


class StoreError(Exception):
    """Base class for key-value store failures."""


class NotFound(StoreError):
    """A caller asked for a record that does not exist (or is not theirs)."""


class Unauthorized(StoreError):
    """The caller identity is missing or does not own the record."""


class MalformedDocumentError(StoreError):
    def __init__(self, name: str, reason: str):
        super().__init__(f"Malformed document {name!r}: {reason}")
        self.name = name
        self.reason = reason


class InvalidPayloadError(StoreError, ValueError):
    """The payload cannot be encoded as JSON; the store was left unchanged."""


class StorageIOError(StoreError):
    """
    A flush could not write the snapshot to stable storage.

    `recoverable` is True for transient conditions (busy, interrupted,
    timed out) that a later flush may clear; False for conditions that need
    an operator (disk full, permission denied, read-only filesystem).
    """

    def __init__(self, message: str, *, recoverable: bool, cause: BaseException | None = None):
        super().__init__(message)
        self.recoverable = recoverable
        self.cause = cause

    @classmethod
    def from_exception(cls, exc: BaseException, *, action: str = "flush") -> StorageIOError:
        if isinstance(exc, StorageIOError):
            return exc
        if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
            return cls(f"{action} timed out", recoverable=True, cause=exc)
        if isinstance(exc, OSError):
            recoverable = exc.errno in _RECOVERABLE_ERRNOS
            return cls(f"{action} failed: {exc}", recoverable=recoverable, cause=exc)
        return cls(f"{action} failed: {exc!r}", recoverable=False, cause=exc)


class StoreClosedError(StoreError):
    """Mutation attempted on a store that has not been opened (or was closed)."""


class StoreLockedError(StoreError):
    """Another process owns the data directory."""
