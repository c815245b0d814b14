# infrastructure/metrics/metrics.py
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

installment_generation_total = Counter(
    "installment_generation_total",
    "Installment invoice generation attempts",
    ["outcome"]  # generated|plan_not_found|phase_limit_reached|validation_failed|downpayment_pending|persistence_failed
)

installment_phase_exhausted_total = Counter(
    "installment_phase_exhausted_total",
    "Plans that generated their final phase"
)

installment_sweep_runs_total = Counter(
    "installment_sweep_runs_total",
    "Due-installment sweeps executed"
)

installment_generation_seconds = Histogram(
    "installment_generation_seconds",
    "Duration of one generation attempt in seconds",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5]
)

def metrics_endpoint():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
