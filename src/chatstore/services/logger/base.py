from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol


@dataclass(frozen=True)
class LogContext:
    request_id: Optional[str] = None
    user_id: Optional[str] = None
    group: Optional[str] = None

    def as_extra(self) -> Mapping[str, Any]:
        # unset fields are left to SafeFormatter's "-" placeholder
        return {k: v for k, v in self.__dict__.items() if v is not None}


class LoggerService(Protocol):
    """What the app factory and CLI need from a logging backend."""

    def base(self) -> logging.Logger: ...
    def with_context(self, logger: logging.Logger, ctx: LogContext) -> logging.Logger: ...
    def for_request_ctx(self, *, request_id: str, user_id: Optional[str] = None) -> logging.Logger: ...
    def shutdown(self) -> None: ...
