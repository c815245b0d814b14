from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import or_, select, update
from domain.entities import CycleDates, GeneratedInvoice, GenerationMode, InstallmentPlan, InvoiceAmounts
from domain.exceptions import InvoiceStoreError, PlanConflictError
from domain.interfaces import InvoiceStore
from infrastructure.db.models import GeneratedInvoiceModel, InstallmentPlanModel


class InvoiceStoreSqlalchemy(InvoiceStore):
    """SQLAlchemy implementation of InvoiceStore."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_plan(self, plan_id: str) -> Optional[InstallmentPlan]:
        """Get a plan by ID."""
        stmt = (
            select(InstallmentPlanModel)
            .where(InstallmentPlanModel.id == plan_id)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise InvoiceStoreError(f"Failed to load installment plan {plan_id}: {e}") from e
        plan_model = result.scalar_one_or_none()
        return plan_model.to_domain() if plan_model else None

    async def save_plan(self, plan: InstallmentPlan) -> InstallmentPlan:
        """Insert a new plan (enrollment creates plans; this subsystem only advances them)."""
        self.db.add(InstallmentPlanModel.from_domain(plan))
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise InvoiceStoreError(f"Failed to save installment plan {plan.id}: {e}") from e
        return plan

    @asynccontextmanager
    async def plan_transaction(self, plan_id: str) -> AsyncIterator[Optional[InstallmentPlan]]:
        """
        Lock the plan row for the rest of the transaction and yield it.

        Commits when the block exits cleanly and rolls back otherwise, so the
        invoice insert and the schedule update land together or not at all.
        SQLite ignores FOR UPDATE; the compare-and-set in advance_plan_schedule
        still rejects a lost race there.
        """
        try:
            stmt = (
                select(InstallmentPlanModel)
                .where(InstallmentPlanModel.id == plan_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            result = await self.db.execute(stmt)
            plan_model = result.scalar_one_or_none()
            yield plan_model.to_domain() if plan_model else None
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise InvoiceStoreError(f"Installment plan transaction failed for {plan_id}: {e}") from e
        except Exception:
            await self.db.rollback()
            raise

    async def persist_generated_invoice(
        self,
        plan_id: str,
        cycle_dates: CycleDates,
        amounts: InvoiceAmounts,
        phase_number: int,
        mode: GenerationMode,
    ) -> GeneratedInvoice:
        """Stage the invoice row in the open transaction (flushed, not committed)."""
        invoice = GeneratedInvoice.create(
            plan_id=plan_id,
            phase_number=phase_number,
            issue_date=cycle_dates.issue,
            due_date=cycle_dates.due,
            invoice_month=cycle_dates.invoice_month,
            generation_date=cycle_dates.generation,
            amounts=amounts,
            generation_mode=mode,
        )
        self.db.add(GeneratedInvoiceModel.from_domain(invoice))
        await self.db.flush()
        return invoice

    async def advance_plan_schedule(
        self,
        plan_id: str,
        generated_phases: int,
        next_invoice_month: date,
        next_generation_date: date,
        expected_generated_phases: int,
    ) -> None:
        """Compare-and-set the phase counter and move the schedule pointer."""
        stmt = (
            update(InstallmentPlanModel)
            .where(
                InstallmentPlanModel.id == plan_id,
                InstallmentPlanModel.generated_phases == expected_generated_phases,
            )
            .values(
                generated_phases=generated_phases,
                next_invoice_month=next_invoice_month,
                next_generation_date=next_generation_date,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            raise PlanConflictError(
                f"Installment plan {plan_id} changed concurrently "
                f"(expected {expected_generated_phases} generated phases)"
            )

    async def list_due_plan_ids(self, as_of: date, limit: int) -> list[str]:
        """Plans due on or before ``as_of`` that can still generate and have a settled downpayment."""
        stmt = (
            select(InstallmentPlanModel.id)
            .where(
                InstallmentPlanModel.next_generation_date.is_not(None),
                InstallmentPlanModel.next_generation_date <= as_of,
                or_(
                    InstallmentPlanModel.total_phases.is_(None),
                    InstallmentPlanModel.generated_phases < InstallmentPlanModel.total_phases,
                ),
                or_(
                    InstallmentPlanModel.downpayment_amount_cents.is_(None),
                    InstallmentPlanModel.downpayment_amount_cents == 0,
                    InstallmentPlanModel.downpayment_paid_at.is_not(None),
                ),
            )
            .order_by(InstallmentPlanModel.next_generation_date.asc())
            .limit(limit)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise InvoiceStoreError(f"Failed to list due installment plans: {e}") from e
        return list(result.scalars().all())

    async def list_plan_invoices(self, plan_id: str) -> list[GeneratedInvoice]:
        """Generated invoices of a plan, oldest phase first."""
        stmt = (
            select(GeneratedInvoiceModel)
            .where(GeneratedInvoiceModel.plan_id == plan_id)
            .order_by(GeneratedInvoiceModel.phase_number.asc())
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise InvoiceStoreError(f"Failed to list invoices of plan {plan_id}: {e}") from e
        return [model.to_domain() for model in result.scalars().all()]
