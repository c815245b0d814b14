from typing import Optional
from domain.interfaces import InvoiceStore
from domain.services import PhaseProgressTracker, PhaseProgress

class GetPlanProgressService:
    def __init__(self, invoice_store: InvoiceStore):
        self.invoice_store = invoice_store

    async def execute(self, plan_id: str) -> Optional[PhaseProgress]:
        """Get the read-only billing progress of a plan."""
        plan = await self.invoice_store.get_plan(plan_id)
        if plan is None:
            return None
        return PhaseProgressTracker.describe_progress(plan)
