from __future__ import annotations
import json
import logging
from datetime import datetime, timezone

# LogContext fields that patterns may reference
_CONTEXT_FIELDS = ("request_id", "user_id", "group")

_STD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


class SafeFormatter(logging.Formatter):
    """Text formatter that tolerates records without context fields."""

    def format(self, record: logging.LogRecord) -> str:
        for name in _CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, "-")
        return super().format(record)


class ColorFormatter(SafeFormatter):
    _COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    _RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = self._COLORS.get(record.levelno)
        return f"{color}{text}{self._RESET}" if color else text


class JsonFormatter(logging.Formatter):
    """One JSON object per line; context fields and `extra` keys are included."""

    def format(self, record: logging.LogRecord) -> str:
        row = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k not in _STD_ATTRS and not k.startswith("_"):
                row[k] = v
        if record.exc_info:
            row["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(row, ensure_ascii=False, default=str)
