from datetime import date, datetime
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, relationship
from domain.entities.generated_invoice import GeneratedInvoice
from infrastructure.db.models.base import Base


class GeneratedInvoiceModel(Base):
    __tablename__ = "installment_invoice"
    # One invoice per phase of a plan
    __table_args__ = (
        UniqueConstraint("plan_id", "phase_number", name="uq_installment_invoice_plan_phase"),
    )

    id: Mapped[str] = Column(String(36), primary_key=True)
    plan_id: Mapped[str] = Column(String(36), ForeignKey("installment_plan.id"), nullable=False, index=True)
    phase_number: Mapped[int] = Column(Integer, nullable=False)
    issue_date: Mapped[date] = Column(Date, nullable=False)
    due_date: Mapped[date] = Column(Date, nullable=False)
    invoice_month: Mapped[date] = Column(Date, nullable=False)
    generation_date: Mapped[date] = Column(Date, nullable=False)
    amount_excluding_tax_cents: Mapped[int] = Column(Integer, nullable=False)
    amount_including_tax_cents: Mapped[int] = Column(Integer, nullable=False)
    generation_mode: Mapped[str] = Column(String, nullable=False)
    status: Mapped[str] = Column(String, nullable=False)
    created_at: Mapped[datetime] = Column(DateTime, nullable=False)

    plan_rel: Mapped["InstallmentPlanModel"] = relationship(
        "InstallmentPlanModel",
        back_populates="invoices_rel",
    )

    def to_domain(self) -> GeneratedInvoice:
        """Convert database model to domain entity."""
        return GeneratedInvoice(
            id=self.id,
            plan_id=self.plan_id,
            phase_number=self.phase_number,
            issue_date=self.issue_date,
            due_date=self.due_date,
            invoice_month=self.invoice_month,
            generation_date=self.generation_date,
            amount_excluding_tax_cents=self.amount_excluding_tax_cents,
            amount_including_tax_cents=self.amount_including_tax_cents,
            generation_mode=self.generation_mode,
            status=self.status,
            created_at=self.created_at,
        )

    @classmethod
    def from_domain(cls, invoice: GeneratedInvoice) -> "GeneratedInvoiceModel":
        """Convert domain GeneratedInvoice entity to database model."""
        return cls(
            id=invoice.id,
            plan_id=invoice.plan_id,
            phase_number=invoice.phase_number,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            invoice_month=invoice.invoice_month,
            generation_date=invoice.generation_date,
            amount_excluding_tax_cents=invoice.amount_excluding_tax_cents,
            amount_including_tax_cents=invoice.amount_including_tax_cents,
            generation_mode=invoice.generation_mode,
            status=invoice.status,
            created_at=invoice.created_at,
        )
