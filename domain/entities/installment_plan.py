from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import uuid4


class BillingState(Enum):
    AWAITING_DOWNPAYMENT = "awaiting_downpayment"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


@dataclass
class InstallmentPlan:
    id: str
    student_id: str
    frequency_months: int
    total_phases: Optional[int]
    generated_phases: int
    amount_excluding_tax_cents: int
    amount_including_tax_cents: int
    created_at: datetime
    next_generation_date: Optional[date] = None
    next_invoice_month: Optional[date] = None
    downpayment_amount_cents: Optional[int] = None
    downpayment_paid_at: Optional[datetime] = None
    description: Optional[str] = None

    @staticmethod
    def create(
        student_id: str,
        frequency_months: int,
        amount_excluding_tax_cents: int,
        amount_including_tax_cents: Optional[int] = None,
        total_phases: Optional[int] = None,
        next_generation_date: Optional[date] = None,
        next_invoice_month: Optional[date] = None,
        downpayment_amount_cents: Optional[int] = None,
        description: Optional[str] = None,
    ) -> 'InstallmentPlan':
        return InstallmentPlan(
            id=str(uuid4()),
            student_id=student_id,
            frequency_months=frequency_months,
            total_phases=total_phases,
            generated_phases=0,
            amount_excluding_tax_cents=amount_excluding_tax_cents,
            # No tax configured means both amounts match
            amount_including_tax_cents=(
                amount_including_tax_cents
                if amount_including_tax_cents is not None
                else amount_excluding_tax_cents
            ),
            created_at=datetime.now(),
            next_generation_date=next_generation_date,
            next_invoice_month=next_invoice_month,
            downpayment_amount_cents=downpayment_amount_cents,
            description=description,
        )

    @property
    def has_schedule_pointer(self) -> bool:
        return self.next_invoice_month is not None or self.next_generation_date is not None

    @property
    def requires_downpayment(self) -> bool:
        return bool(self.downpayment_amount_cents)

    @property
    def downpayment_settled(self) -> bool:
        return not self.requires_downpayment or self.downpayment_paid_at is not None

    def mark_downpayment_paid(self, paid_at: Optional[datetime] = None) -> 'InstallmentPlan':
        self.downpayment_paid_at = paid_at or datetime.now()
        return self
