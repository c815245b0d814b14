from .cycle_dates import compute_cycle_dates, compute_cycle_dates_from_pointer, parse_frequency_months
from .phase_progress import PhaseProgressTracker, PhaseProgress
from .manual_override import validate_manual_override, OverrideValidationResult

__all__ = [
    "compute_cycle_dates", "compute_cycle_dates_from_pointer", "parse_frequency_months",
    "PhaseProgressTracker", "PhaseProgress",
    "validate_manual_override", "OverrideValidationResult",
]
