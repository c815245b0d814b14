from typing import Any, Optional, Literal
from datetime import date, datetime
from pydantic import BaseModel, Field


class GenerateInvoiceRequest(BaseModel):
    mode: Literal["auto", "manual"] = "manual"
    # Auto mode only: trigger date the cycle is derived from (defaults to the plan's scheduled cycle)
    anchor_date: Optional[date] = None
    # Manual override, YYYY-MM-DD; any JSON value is passed to the override validator
    issue_date: Optional[Any] = None
    due_date: Optional[Any] = None
    invoice_month: Optional[Any] = None
    generation_date: Optional[Any] = None
    next_issue_date: Optional[Any] = None
    next_due_date: Optional[Any] = None
    next_invoice_month: Optional[Any] = None
    next_generation_date: Optional[Any] = None


class GenerateInvoiceResponse(BaseModel):
    invoice_id: str
    invoice_reference: str
    plan_id: str
    phase_number: int
    issue_date: date
    due_date: date
    invoice_month: date
    generation_date: date
    amount_including_tax_cents: int
    generated_phases: int
    total_phases: Optional[int] = None
    remaining_phases: Optional[int] = None
    phase_limit_reached: bool
    next_generation_date: date
    next_invoice_month: date


class PlanProgressResponse(BaseModel):
    plan_id: str
    generated_phases: int
    total_phases: Optional[int] = None
    remaining_phases: Optional[int] = Field(None, description="null for plans without a phase limit")
    generation_allowed: bool
    billing_state: str
    frequency_months: int
    next_generation_date: Optional[date] = None
    next_invoice_month: Optional[date] = None


class CycleDatesResponse(BaseModel):
    issue_date: date
    due_date: date
    invoice_month: date
    generation_date: date
    next_issue_date: date
    next_due_date: date
    next_invoice_month: date
    next_generation_date: date


class InvoiceResponse(BaseModel):
    id: str
    reference: str
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


class SweepRequest(BaseModel):
    as_of: Optional[date] = None


class SweepResponse(BaseModel):
    as_of: date
    total_due: int
    processed: int
    errors: int
    details: dict[str, list[dict]]
