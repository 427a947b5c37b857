from .base import LogContext, LoggerService
from .std import LoggingConfig, StdLoggerService

__all__ = ["LogContext", "LoggerService", "LoggingConfig", "StdLoggerService"]
