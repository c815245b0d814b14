"""
Shared fixtures: plan factory, an in-memory InvoiceStore and an in-memory
SQLite session for the SQLAlchemy store.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import date, datetime
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from domain.config import BillingCycleConfig
from domain.entities import CycleDates, GeneratedInvoice, GenerationMode, InstallmentPlan, InvoiceAmounts
from domain.exceptions import InvoiceStoreError, PlanConflictError
from infrastructure.db.models import Base


class InMemoryInvoiceStore:
    """
    InvoiceStore keeping plans and invoices in dicts.

    plan_transaction snapshots state and restores it when the block raises.
    Each step yields to the event loop so concurrent callers interleave.
    """

    def __init__(self, plans=()):
        self.plans: dict[str, InstallmentPlan] = {plan.id: replace(plan) for plan in plans}
        self.invoices: list[GeneratedInvoice] = []
        self.fail_advance = False
        self.commits = 0
        self.rollbacks = 0

    async def get_plan(self, plan_id: str) -> Optional[InstallmentPlan]:
        plan = self.plans.get(plan_id)
        return replace(plan) if plan else None

    @asynccontextmanager
    async def plan_transaction(self, plan_id: str):
        saved_plans = {key: replace(plan) for key, plan in self.plans.items()}
        saved_invoices = list(self.invoices)
        await asyncio.sleep(0)
        plan = self.plans.get(plan_id)
        try:
            yield replace(plan) if plan else None
        except Exception:
            self.plans = saved_plans
            self.invoices = saved_invoices
            self.rollbacks += 1
            raise
        await asyncio.sleep(0)
        self.commits += 1

    async def persist_generated_invoice(
        self,
        plan_id: str,
        cycle_dates: CycleDates,
        amounts: InvoiceAmounts,
        phase_number: int,
        mode: GenerationMode,
    ) -> GeneratedInvoice:
        await asyncio.sleep(0)
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
        self.invoices.append(invoice)
        return invoice

    async def advance_plan_schedule(
        self,
        plan_id: str,
        generated_phases: int,
        next_invoice_month: date,
        next_generation_date: date,
        expected_generated_phases: int,
    ) -> None:
        await asyncio.sleep(0)
        if self.fail_advance:
            raise InvoiceStoreError("database unavailable")
        plan = self.plans[plan_id]
        if plan.generated_phases != expected_generated_phases:
            raise PlanConflictError(f"Installment plan {plan_id} changed concurrently")
        plan.generated_phases = generated_phases
        plan.next_invoice_month = next_invoice_month
        plan.next_generation_date = next_generation_date

    async def list_due_plan_ids(self, as_of: date, limit: int) -> list[str]:
        due = [
            plan for plan in self.plans.values()
            if plan.next_generation_date is not None
            and plan.next_generation_date <= as_of
            and (plan.total_phases is None or plan.generated_phases < plan.total_phases)
            and plan.downpayment_settled
        ]
        due.sort(key=lambda plan: plan.next_generation_date)
        return [plan.id for plan in due[:limit]]

    async def list_plan_invoices(self, plan_id: str) -> list[GeneratedInvoice]:
        return sorted(
            (invoice for invoice in self.invoices if invoice.plan_id == plan_id),
            key=lambda invoice: invoice.phase_number,
        )


@pytest.fixture
def default_policy():
    """The 1st / 5th / 25th policy, independent of the test environment."""
    return BillingCycleConfig(invoice_month_day=1, due_day=5, generation_day=25, due_month_offset=1)


@pytest.fixture
def make_plan():
    """Build an InstallmentPlan with sensible defaults; keyword args override fields."""
    def _make_plan(**overrides) -> InstallmentPlan:
        plan = InstallmentPlan.create(
            student_id=overrides.pop("student_id", "student-1"),
            frequency_months=overrides.pop("frequency_months", 1),
            amount_excluding_tax_cents=overrides.pop("amount_excluding_tax_cents", 25000),
            amount_including_tax_cents=overrides.pop("amount_including_tax_cents", 30000),
            total_phases=overrides.pop("total_phases", 3),
        )
        for key, value in overrides.items():
            setattr(plan, key, value)
        return plan
    return _make_plan


@pytest.fixture
def paid_downpayment_plan(make_plan):
    return make_plan(downpayment_amount_cents=50000, downpayment_paid_at=datetime(2026, 1, 15, 10, 0))


@pytest.fixture
def make_store():
    def _make_store(*plans) -> InMemoryInvoiceStore:
        return InMemoryInvoiceStore(plans)
    return _make_store


@pytest.fixture
def valid_override():
    """A complete, well-formed manual override."""
    return {
        "issue_date": "2026-02-09",
        "due_date": "2026-04-05",
        "invoice_month": "2026-03-01",
        "generation_date": "2026-03-25",
        "next_issue_date": "2026-04-25",
        "next_due_date": "2026-05-05",
        "next_invoice_month": "2026-04-01",
        "next_generation_date": "2026-04-25",
    }


@pytest_asyncio.fixture
async def async_session():
    """Provide an async session backed by an in-memory SQLite database."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session

    await engine.dispose()
