# chatstore/config/loader.py
import logging
import os
from pathlib import Path
from typing import Iterable

from .config import AppSettings


def _existing(paths: Iterable[Path]) -> list[Path]:
    return [p for p in paths if p.exists()]


def load_settings(cwd: str | Path | None = None) -> AppSettings:
    base = Path(cwd) if cwd is not None else Path.cwd()

    # allow an explicit path via env var
    explicit = Path(os.environ["CHATSTORE_ENV_FILE"]) if "CHATSTORE_ENV_FILE" in os.environ else None

    candidates = _existing([
        explicit or Path("NON_EXISTENT"),  # placeholder if not set
        base / ".env",
        base / ".env.local",
    ])

    if not candidates and explicit:
        raise FileNotFoundError(f"Explicitly specified env file not found: {explicit}")

    if len(candidates) == 0:
        log = logging.getLogger("chatstore.config.loader")
        log.debug("No env files found; using defaults and env vars only.")

    if candidates:
        # Later files override earlier ones
        return AppSettings(_env_file=[str(p) for p in candidates])
    return AppSettings()
