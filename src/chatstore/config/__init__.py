from .config import AppSettings, LoggingSettings, ServerSettings
from .loader import load_settings
from .runtime import get_settings
from .storage import FSSnapshotSettings, StorageSettings

__all__ = [
    "AppSettings",
    "LoggingSettings",
    "ServerSettings",
    "StorageSettings",
    "FSSnapshotSettings",
    "load_settings",
    "get_settings",
]
