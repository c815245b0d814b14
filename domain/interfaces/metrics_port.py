from typing_extensions import Protocol


class MetricsPort(Protocol):
    """Protocol for metrics operations."""

    def increment_generation_total(self, outcome: str) -> None:
        """
        Increment the installment_generation_total counter.

        Args:
            outcome: A GenerationOutcome value ("generated", "phase_limit_reached", ...)
        """
        ...

    def increment_phase_exhausted(self) -> None:
        """Count a plan that just generated its final phase."""
        ...

    def observe_generation_seconds(self, seconds: float) -> None:
        """Record how long one generation attempt took."""
        ...

    def increment_sweep_runs(self) -> None:
        """Count one due-installment sweep."""
        ...
