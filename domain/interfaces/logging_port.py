from typing_extensions import Protocol
from typing import Any


class BoundLogger(Protocol):
    """Logger carrying context fields (request_id, plan_id, step) on every event."""

    def bind(self, **kwargs: Any) -> "BoundLogger":
        """Return a child logger with extra context fields."""
        ...

    def info(self, event: str, **kwargs: Any) -> None: ...

    def warning(self, event: str, **kwargs: Any) -> None: ...

    def error(self, event: str, exc_info: bool = False, **kwargs: Any) -> None:
        """
        Log an error event.

        Args:
            event: snake_case event name
            exc_info: Attach the active exception's traceback
            **kwargs: Additional context fields
        """
        ...


class LoggingPort(Protocol):
    """Protocol for structured logging."""

    def bind(self, **kwargs: Any) -> BoundLogger:
        """
        Create a bound logger.

        Args:
            **kwargs: Context fields to bind to all log events

        Returns:
            A bound logger with the specified context
        """
        ...


class NoOpLogger:
    """BoundLogger that drops every event, for services built without a logging port."""

    def bind(self, **kwargs: Any) -> "NoOpLogger":
        return self

    def info(self, event: str, **kwargs: Any) -> None:
        pass

    def warning(self, event: str, **kwargs: Any) -> None:
        pass

    def error(self, event: str, exc_info: bool = False, **kwargs: Any) -> None:
        pass
