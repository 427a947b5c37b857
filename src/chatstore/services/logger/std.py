from __future__ import annotations

import logging
import logging.handlers
import queue
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from chatstore.config.config import LoggingSettings

from .base import LogContext, LoggerService
from .formatters import ColorFormatter, JsonFormatter, SafeFormatter

CONSOLE_PATTERN = "%(asctime)s %(levelname)s %(name)s req=%(request_id)s - %(message)s"
FILE_PATTERN = "%(asctime)s %(levelname)s %(name)s %(request_id)s %(user_id)s %(group)s %(message)s"
LOG_FILE = "chatstore.log"


@dataclass(frozen=True)
class LoggingConfig:
    """
    Sinks for the `chatstore` logger tree.

    log_dir=None keeps logging on the console only. With enable_queue the
    rotating file handler runs behind a QueueListener thread so request
    handlers never block on disk.
    """

    level: str = "INFO"
    log_dir: Optional[str] = None
    use_json: bool = False
    enable_queue: bool = False
    root_ns: str = "chatstore"
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5

    @classmethod
    def from_settings(cls, settings: LoggingSettings, *, enable_queue: bool = True) -> LoggingConfig:
        return cls(
            level=settings.level,
            log_dir=settings.log_dir or None,
            use_json=settings.json_logs,
            enable_queue=enable_queue,
        )


class _ContextAdapter(logging.LoggerAdapter):
    # per-call `extra` wins over the bound context
    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(ColorFormatter(CONSOLE_PATTERN))
    return handler


def _file_handler(cfg: LoggingConfig, level: int) -> logging.Handler:
    log_dir = Path(cfg.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_dir / LOG_FILE, maxBytes=cfg.max_bytes, backupCount=cfg.backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter() if cfg.use_json else SafeFormatter(FILE_PATTERN))
    return handler


class StdLoggerService(LoggerService):
    """Owns the handlers on the root `chatstore` logger and hands out request-scoped adapters."""

    def __init__(self, base: logging.Logger, *, listener: Optional[logging.handlers.QueueListener] = None):
        self._base = base
        self._listener = listener

    def base(self) -> logging.Logger:
        return self._base

    def with_context(self, logger: logging.Logger, ctx: LogContext) -> logging.Logger:
        return _ContextAdapter(logger, ctx.as_extra())

    def for_request_ctx(self, *, request_id: str, user_id: Optional[str] = None) -> logging.Logger:
        api = self._base.getChild("api")
        return self.with_context(api, LogContext(request_id=request_id, user_id=user_id))

    def shutdown(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None

    @staticmethod
    def build(cfg: LoggingConfig) -> StdLoggerService:
        level = _level(cfg.level)

        root = logging.getLogger(cfg.root_ns)
        # rebuilding (e.g. a second create_app in one process) replaces the sinks
        for h in list(root.handlers):
            root.removeHandler(h)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(_console_handler(level))

        if not cfg.log_dir:
            return StdLoggerService(root)

        fh = _file_handler(cfg, level)
        if not cfg.enable_queue:
            root.addHandler(fh)
            return StdLoggerService(root)

        q: queue.Queue = queue.Queue(-1)
        root.addHandler(logging.handlers.QueueHandler(q))
        listener = logging.handlers.QueueListener(q, fh, respect_handler_level=True)
        listener.start()
        return StdLoggerService(root, listener=listener)
