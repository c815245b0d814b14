from domain.entities import GeneratedInvoice
from domain.interfaces import InvoiceStore

class ListPlanInvoicesService:
    def __init__(self, invoice_store: InvoiceStore):
        self.invoice_store = invoice_store

    async def execute(self, plan_id: str) -> list[GeneratedInvoice]:
        return await self.invoice_store.list_plan_invoices(plan_id)
