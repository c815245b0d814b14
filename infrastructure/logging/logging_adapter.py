"""
Logging adapter that implements LoggingPort on top of structlog.
"""
from typing import Any
from domain.interfaces import LoggingPort, BoundLogger
from infrastructure.logging.structlog_logs import logger as structlog_logger


class StructlogBoundLogger:
    """BoundLogger backed by a structlog bound logger."""

    def __init__(self, bound_logger):
        self._logger = bound_logger

    def bind(self, **kwargs: Any) -> "StructlogBoundLogger":
        return StructlogBoundLogger(self._logger.bind(**kwargs))

    def info(self, event: str, **kwargs: Any) -> None:
        self._logger.info(event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._logger.warning(event, **kwargs)

    def error(self, event: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._logger.error(event, exc_info=exc_info, **kwargs)


class LoggingAdapter(LoggingPort):
    """
    LoggingPort producing JSON lines on stdout.

    Every event carries the context bound here (request_id, plan_id, step)
    in addition to its own fields.
    """

    def bind(self, **kwargs: Any) -> BoundLogger:
        return StructlogBoundLogger(structlog_logger.bind(**kwargs))
