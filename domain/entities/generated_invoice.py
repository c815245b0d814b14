from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import uuid4


class InvoiceStatus(Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class GenerationMode(Enum):
    AUTO = "auto"
    MANUAL = "manual"


@dataclass(frozen=True)
class InvoiceAmounts:
    excluding_tax_cents: int
    including_tax_cents: int


@dataclass
class GeneratedInvoice:
    id: str
    plan_id: str
    phase_number: int
    issue_date: date
    due_date: date
    invoice_month: date
    generation_date: date
    amount_excluding_tax_cents: int
    amount_including_tax_cents: int
    generation_mode: str
    status: str
    created_at: datetime

    @staticmethod
    def create(
        plan_id: str,
        phase_number: int,
        issue_date: date,
        due_date: date,
        invoice_month: date,
        generation_date: date,
        amounts: InvoiceAmounts,
        generation_mode: GenerationMode,
    ) -> 'GeneratedInvoice':
        return GeneratedInvoice(
            id=str(uuid4()),
            plan_id=plan_id,
            phase_number=phase_number,
            issue_date=issue_date,
            due_date=due_date,
            invoice_month=invoice_month,
            generation_date=generation_date,
            amount_excluding_tax_cents=amounts.excluding_tax_cents,
            amount_including_tax_cents=amounts.including_tax_cents,
            generation_mode=generation_mode.value,
            status=InvoiceStatus.UNPAID.value,
            created_at=datetime.now(),
        )

    @property
    def reference(self) -> str:
        """Human-facing invoice number printed on statements."""
        return f"INV-{self.id[:8].upper()}"
