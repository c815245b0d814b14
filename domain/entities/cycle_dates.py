from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional

# Request field name -> CycleDates attribute
OVERRIDE_FIELDS = {
    "issue_date": "issue",
    "due_date": "due",
    "invoice_month": "invoice_month",
    "generation_date": "generation",
    "next_issue_date": "next_issue",
    "next_due_date": "next_due",
    "next_invoice_month": "next_invoice_month",
    "next_generation_date": "next_generation",
}


@dataclass(frozen=True)
class CycleDates:
    """
    The eight dates of one generation attempt.

    The first four describe the invoice created now, the ``next_*`` four
    describe the following cycle and become the plan's schedule pointer.
    Built either by the calculator or from a validated operator override;
    consumers never need to know which.
    """
    issue: date
    due: date
    invoice_month: date
    generation: date
    next_issue: date
    next_due: date
    next_invoice_month: date
    next_generation: date

    @classmethod
    def from_calculator(cls, anchor: date, frequency_months: int, policy=None) -> 'CycleDates':
        from domain.services.cycle_dates import compute_cycle_dates

        return compute_cycle_dates(anchor, frequency_months, policy=policy)

    @classmethod
    def from_schedule_pointer(cls, plan, policy=None) -> 'CycleDates':
        """Dates of the cycle the plan's stored next_invoice_month / next_generation_date point at."""
        from domain.services.cycle_dates import compute_cycle_dates_from_pointer

        return compute_cycle_dates_from_pointer(
            plan.next_invoice_month, plan.next_generation_date, plan.frequency_months, policy=policy
        )

    @classmethod
    def from_validated_override(cls, dates: Mapping[str, Optional[date]]) -> 'CycleDates':
        """
        Build from validator output keyed by request field name.

        ``generation_date`` falls back to ``issue_date``: an operator-triggered
        run is itself the generation event.
        """
        values = {attr: dates.get(field) for field, attr in OVERRIDE_FIELDS.items()}
        if values["generation"] is None:
            values["generation"] = values["issue"]
        return cls(**values)

    def to_dict(self) -> dict[str, date]:
        """Dates keyed by request field name."""
        return {field: getattr(self, attr) for field, attr in OVERRIDE_FIELDS.items()}
