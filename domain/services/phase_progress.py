"""
Phase Progress Module

Stateless eligibility gate and progress reporting for installment plans.
Shared by the automatic sweep, operator-triggered generation and the
read-only progress view.
"""
from datetime import date
from typing import TypedDict, Optional

from domain.entities import InstallmentPlan, BillingState


class PhaseProgress(TypedDict):
    plan_id: str
    generated_phases: int
    total_phases: Optional[int]
    remaining_phases: Optional[int]  # None means unbounded
    generation_allowed: bool
    billing_state: str
    frequency_months: int
    next_generation_date: Optional[date]
    next_invoice_month: Optional[date]


class PhaseProgressTracker:
    @staticmethod
    def is_generation_allowed(plan: InstallmentPlan) -> bool:
        if plan.total_phases is None:
            return True
        return plan.generated_phases < plan.total_phases

    @staticmethod
    def remaining_phases(plan: InstallmentPlan) -> Optional[int]:
        """Phases still to be generated, or None for an unbounded plan."""
        if plan.total_phases is None:
            return None
        return max(plan.total_phases - plan.generated_phases, 0)

    @staticmethod
    def billing_state(plan: InstallmentPlan) -> BillingState:
        # Exhaustion wins over an unpaid downpayment: nothing can leave it
        if not PhaseProgressTracker.is_generation_allowed(plan):
            return BillingState.EXHAUSTED
        if not plan.downpayment_settled:
            return BillingState.AWAITING_DOWNPAYMENT
        return BillingState.ACTIVE

    @classmethod
    def describe_progress(cls, plan: InstallmentPlan) -> PhaseProgress:
        return PhaseProgress(
            plan_id=plan.id,
            generated_phases=plan.generated_phases,
            total_phases=plan.total_phases,
            remaining_phases=cls.remaining_phases(plan),
            generation_allowed=cls.is_generation_allowed(plan),
            billing_state=cls.billing_state(plan).value,
            frequency_months=plan.frequency_months,
            next_generation_date=plan.next_generation_date,
            next_invoice_month=plan.next_invoice_month,
        )
