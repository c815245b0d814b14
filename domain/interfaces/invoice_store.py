from datetime import date
from typing import AsyncContextManager, Optional

from typing_extensions import Protocol

from domain.entities import CycleDates, GeneratedInvoice, GenerationMode, InstallmentPlan, InvoiceAmounts


class InvoiceStore(Protocol):
    """
    Persistence port for installment plans and the invoices generated from them.

    ``persist_generated_invoice`` and ``advance_plan_schedule`` only take effect
    when called inside ``plan_transaction``: the transaction commits both on a
    clean exit and discards both when the block raises.
    """

    async def get_plan(self, plan_id: str) -> Optional[InstallmentPlan]: ...

    def plan_transaction(self, plan_id: str) -> AsyncContextManager[Optional[InstallmentPlan]]:
        """
        Open a transaction holding the plan row lock.

        Yields:
            The locked plan, or None when it does not exist

        Raises:
            InvoiceStoreError: the transaction could not be opened or committed
        """
        ...

    async def persist_generated_invoice(
        self,
        plan_id: str,
        cycle_dates: CycleDates,
        amounts: InvoiceAmounts,
        phase_number: int,
        mode: GenerationMode,
    ) -> GeneratedInvoice: ...

    async def advance_plan_schedule(
        self,
        plan_id: str,
        generated_phases: int,
        next_invoice_month: date,
        next_generation_date: date,
        expected_generated_phases: int,
    ) -> None:
        """
        Write the new counter and schedule pointer.

        Raises:
            PlanConflictError: the stored counter no longer equals ``expected_generated_phases``
        """
        ...

    async def list_due_plan_ids(self, as_of: date, limit: int) -> list[str]: ...

    async def list_plan_invoices(self, plan_id: str) -> list[GeneratedInvoice]: ...
