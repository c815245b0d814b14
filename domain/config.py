"""
Configuration module for installment invoice generation.

All configuration values are loaded from environment variables with sensible defaults.
See .env.example for all available configuration options.
"""
import os
from dataclasses import dataclass, field


def _get_int(key: str, default: int) -> int:
    """Get int from environment variable."""
    return int(os.getenv(key, default))


@dataclass
class BillingCycleConfig:
    """Day-of-month policy used when deriving cycle dates automatically."""

    # Day pinned on the billed month marker
    invoice_month_day: int = field(default_factory=lambda: _get_int("BILLING_INVOICE_MONTH_DAY", 1))
    # Day of the month the invoice falls due
    due_day: int = field(default_factory=lambda: _get_int("BILLING_DUE_DAY", 5))
    # Day of the billed month the automatic sweep would have produced the invoice
    generation_day: int = field(default_factory=lambda: _get_int("BILLING_GENERATION_DAY", 25))
    # Months between the billed month and the due month
    due_month_offset: int = field(default_factory=lambda: _get_int("BILLING_DUE_MONTH_OFFSET", 1))

    def __post_init__(self):
        # Every month has a 28th, so pinned days never overflow
        for name in ("invoice_month_day", "due_day", "generation_day"):
            value = getattr(self, name)
            if not 1 <= value <= 28:
                raise ValueError(f"{name} must be between 1 and 28, got {value}")
        if self.due_month_offset < 0:
            raise ValueError(f"due_month_offset must not be negative, got {self.due_month_offset}")
        # An invoice can't fall due before it is generated
        if self.due_month_offset == 0 and self.due_day < self.generation_day:
            raise ValueError("due_day must not precede generation_day within the billed month")


@dataclass
class SweepConfig:
    """Due-installment sweep settings."""
    batch_limit: int = field(default_factory=lambda: _get_int("SWEEP_BATCH_LIMIT", 500))


# Global config instances (lazy loaded)
_billing_config = None
_sweep_config = None


def get_billing_config() -> BillingCycleConfig:
    """Get billing cycle configuration."""
    global _billing_config
    if _billing_config is None:
        _billing_config = BillingCycleConfig()
    return _billing_config


def get_sweep_config() -> SweepConfig:
    """Get sweep configuration."""
    global _sweep_config
    if _sweep_config is None:
        _sweep_config = SweepConfig()
    return _sweep_config


def reload_config():
    """Force reload of all configuration from environment variables."""
    global _billing_config, _sweep_config
    _billing_config = BillingCycleConfig()
    _sweep_config = SweepConfig()
