"""
Metrics adapter that implements MetricsPort on top of the Prometheus collectors.
"""
from domain.interfaces import MetricsPort
from infrastructure.metrics.metrics import (
    installment_generation_total,
    installment_phase_exhausted_total,
    installment_sweep_runs_total,
    installment_generation_seconds,
)

class MetricsAdapter(MetricsPort):
    """Adapter that increments the collectors exposed on /metrics."""

    def increment_generation_total(self, outcome: str) -> None:
        installment_generation_total.labels(outcome=outcome).inc()

    def increment_phase_exhausted(self) -> None:
        installment_phase_exhausted_total.inc()

    def observe_generation_seconds(self, seconds: float) -> None:
        installment_generation_seconds.observe(seconds)

    def increment_sweep_runs(self) -> None:
        installment_sweep_runs_total.inc()
