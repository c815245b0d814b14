from datetime import date
from typing import Optional
from domain.config import BillingCycleConfig
from domain.entities import CycleDates
from domain.interfaces import InvoiceStore

class PreviewCycleService:
    def __init__(self, invoice_store: InvoiceStore, policy: Optional[BillingCycleConfig] = None):
        self.invoice_store = invoice_store
        self.policy = policy

    async def execute(self, plan_id: str, anchor: Optional[date] = None) -> Optional[CycleDates]:
        """
        Dates an automatic generation would use if triggered now, or on ``anchor``.

        Without an anchor, a plan with a schedule pointer previews the cycle it
        points at. Used to prefill the operator's manual generation form;
        nothing is persisted.

        Raises:
            InvalidFrequencyError: the stored plan frequency is not usable
        """
        plan = await self.invoice_store.get_plan(plan_id)
        if plan is None:
            return None
        if anchor is None and plan.has_schedule_pointer:
            return CycleDates.from_schedule_pointer(plan, policy=self.policy)
        return CycleDates.from_calculator(anchor or date.today(), plan.frequency_months, policy=self.policy)
