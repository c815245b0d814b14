from datetime import date, datetime
from typing import Optional, TYPE_CHECKING
from sqlalchemy import CheckConstraint, Column, Date, DateTime, Integer, String
from sqlalchemy.orm import Mapped, relationship
from domain.entities.installment_plan import InstallmentPlan
from infrastructure.db.models.base import Base

if TYPE_CHECKING:
    from infrastructure.db.models.generated_invoices import GeneratedInvoiceModel


class InstallmentPlanModel(Base):
    __tablename__ = "installment_plan"
    __table_args__ = (
        CheckConstraint("frequency_months >= 1", name="ck_installment_plan_frequency_positive"),
        CheckConstraint(
            "total_phases IS NULL OR generated_phases <= total_phases",
            name="ck_installment_plan_phase_limit",
        ),
    )

    id: Mapped[str] = Column(String(36), primary_key=True)
    student_id: Mapped[str] = Column(String, nullable=False, index=True)
    frequency_months: Mapped[int] = Column(Integer, nullable=False)
    total_phases: Mapped[Optional[int]] = Column(Integer, nullable=True)  # NULL = unbounded
    generated_phases: Mapped[int] = Column(Integer, nullable=False, default=0)
    amount_excluding_tax_cents: Mapped[int] = Column(Integer, nullable=False)
    amount_including_tax_cents: Mapped[int] = Column(Integer, nullable=False)
    downpayment_amount_cents: Mapped[Optional[int]] = Column(Integer, nullable=True)
    downpayment_paid_at: Mapped[Optional[datetime]] = Column(DateTime, nullable=True)
    next_generation_date: Mapped[Optional[date]] = Column(Date, nullable=True, index=True)
    next_invoice_month: Mapped[Optional[date]] = Column(Date, nullable=True)
    description: Mapped[Optional[str]] = Column(String, nullable=True)
    created_at: Mapped[datetime] = Column(DateTime, nullable=False)

    invoices_rel: Mapped[list["GeneratedInvoiceModel"]] = relationship(
        "GeneratedInvoiceModel",
        back_populates="plan_rel",
        lazy="noload",
    )

    def to_domain(self) -> InstallmentPlan:
        """Convert database model to domain entity."""
        return InstallmentPlan(
            id=self.id,
            student_id=self.student_id,
            frequency_months=self.frequency_months,
            total_phases=self.total_phases,
            generated_phases=self.generated_phases or 0,
            amount_excluding_tax_cents=self.amount_excluding_tax_cents,
            amount_including_tax_cents=self.amount_including_tax_cents,
            created_at=self.created_at,
            next_generation_date=self.next_generation_date,
            next_invoice_month=self.next_invoice_month,
            downpayment_amount_cents=self.downpayment_amount_cents,
            downpayment_paid_at=self.downpayment_paid_at,
            description=self.description,
        )

    @classmethod
    def from_domain(cls, plan: InstallmentPlan) -> "InstallmentPlanModel":
        """Convert domain InstallmentPlan entity to database model."""
        return cls(
            id=plan.id,
            student_id=plan.student_id,
            frequency_months=plan.frequency_months,
            total_phases=plan.total_phases,
            generated_phases=plan.generated_phases,
            amount_excluding_tax_cents=plan.amount_excluding_tax_cents,
            amount_including_tax_cents=plan.amount_including_tax_cents,
            downpayment_amount_cents=plan.downpayment_amount_cents,
            downpayment_paid_at=plan.downpayment_paid_at,
            next_generation_date=plan.next_generation_date,
            next_invoice_month=plan.next_invoice_month,
            description=plan.description,
            created_at=plan.created_at,
        )
