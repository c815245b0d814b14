from datetime import date
from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.installment_schema import (
    CycleDatesResponse,
    GenerateInvoiceRequest,
    GenerateInvoiceResponse,
    InvoiceResponse,
    PlanProgressResponse,
    SweepRequest,
    SweepResponse,
)
from application.service.generate_installment_invoice import (
    GenerateInstallmentInvoiceService,
    GenerationOutcome,
    GenerationResult,
)
from application.service.get_plan_progress import GetPlanProgressService
from application.service.list_plan_invoices import ListPlanInvoicesService
from application.service.preview_cycle import PreviewCycleService
from application.service.process_due_installments import ProcessDueInstallmentsService
from domain.entities import GenerationMode, OVERRIDE_FIELDS
from domain.exceptions import InvalidFrequencyError, InvoiceStoreError
from infrastructure.db.database import get_db_session
from infrastructure.db.repositories.invoice_store_sqlalchemy import InvoiceStoreSqlalchemy
from infrastructure.logging.logging_adapter import LoggingAdapter
from infrastructure.metrics.metrics_adapter import MetricsAdapter


router = APIRouter(prefix="/v1")

# Field-level validation failure
HTTP_422_UNPROCESSABLE = 422

_FAILURE_STATUS = {
    GenerationOutcome.PLAN_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    GenerationOutcome.PHASE_LIMIT_REACHED: status.HTTP_409_CONFLICT,
    GenerationOutcome.DOWNPAYMENT_PENDING: status.HTTP_409_CONFLICT,
    GenerationOutcome.VALIDATION_FAILED: HTTP_422_UNPROCESSABLE,
    GenerationOutcome.PERSISTENCE_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _plan_not_found(plan_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "plan_not_found", "message": f"Installment plan {plan_id} not found"}
    )


def _store_unavailable(e: InvoiceStoreError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"error": "persistence_failed", "message": str(e)}
    )


def _failure(result: GenerationResult) -> HTTPException:
    detail = {"error": result.outcome.value, "message": result.message}
    if result.errors:
        detail["errors"] = result.errors
    if result.outcome is GenerationOutcome.PHASE_LIMIT_REACHED:
        detail["generated_phases"] = result.generated_phases
        detail["total_phases"] = result.total_phases
    return HTTPException(status_code=_FAILURE_STATUS[result.outcome], detail=detail)


@router.post("/installment-plans/{plan_id}/invoices/generate", status_code=status.HTTP_201_CREATED)
async def generate_invoice(
    plan_id: str,
    payload: Optional[GenerateInvoiceRequest] = None,
    x_request_id: Optional[str] = Header(
        None,
        alias="X-Request-ID",
        description="Request ID for tracing across logs.",
    ),
    db: AsyncSession = Depends(get_db_session)
) -> GenerateInvoiceResponse:
    """
    Generate the next installment invoice of a plan.

    - **manual** (default): the eight date fields are taken as given by the operator
      (`generation_date` defaults to `issue_date`)
    - **auto**: dates are derived from `anchor_date`; when omitted, the plan bills the
      cycle its schedule pointer announces (today for a plan without one)

    The invoice, the phase counter and the next-generation pointer are saved together.
    A plan whose phases are all generated answers 409 `phase_limit_reached`.
    """
    payload = payload or GenerateInvoiceRequest()
    request_id = x_request_id or str(uuid.uuid4())
    srv = GenerateInstallmentInvoiceService(
        invoice_store=InvoiceStoreSqlalchemy(db),
        metrics_port=MetricsAdapter(),
        logging_port=LoggingAdapter(),
    )

    if payload.mode == "auto":
        result = await srv.execute(
            plan_id,
            mode=GenerationMode.AUTO,
            anchor=payload.anchor_date,
            request_id=request_id,
        )
    else:
        override = {field: getattr(payload, field) for field in OVERRIDE_FIELDS}
        result = await srv.execute(
            plan_id,
            mode=GenerationMode.MANUAL,
            override=override,
            request_id=request_id,
        )

    if not result.succeeded:
        raise _failure(result)

    invoice = result.invoice
    return GenerateInvoiceResponse(
        invoice_id=invoice.id,
        invoice_reference=invoice.reference,
        plan_id=plan_id,
        phase_number=invoice.phase_number,
        issue_date=invoice.issue_date,
        due_date=invoice.due_date,
        invoice_month=invoice.invoice_month,
        generation_date=invoice.generation_date,
        amount_including_tax_cents=invoice.amount_including_tax_cents,
        generated_phases=result.generated_phases,
        total_phases=result.total_phases,
        remaining_phases=result.remaining_phases,
        phase_limit_reached=result.phase_limit_reached,
        next_generation_date=result.cycle_dates.next_generation,
        next_invoice_month=result.cycle_dates.next_invoice_month,
    )


@router.get("/installment-plans/{plan_id}/progress")
async def plan_progress(plan_id: str, db: AsyncSession = Depends(get_db_session)) -> PlanProgressResponse:
    """
    Billing progress of a plan: phases generated, phases left and the next scheduled cycle.
    """
    srv = GetPlanProgressService(InvoiceStoreSqlalchemy(db))
    try:
        progress = await srv.execute(plan_id)
    except InvoiceStoreError as e:
        raise _store_unavailable(e)
    if progress is None:
        raise _plan_not_found(plan_id)
    return PlanProgressResponse(**progress)


@router.get("/installment-plans/{plan_id}/cycle-preview")
async def cycle_preview(
    plan_id: str,
    anchor: Optional[date] = Query(None, description="Trigger date, YYYY-MM-DD (defaults to the plan's scheduled cycle, else today)"),
    db: AsyncSession = Depends(get_db_session)
) -> CycleDatesResponse:
    """
    Dates an automatic generation would use, for prefilling the manual generation form.
    """
    srv = PreviewCycleService(InvoiceStoreSqlalchemy(db))
    try:
        cycle_dates = await srv.execute(plan_id, anchor=anchor)
    except InvoiceStoreError as e:
        raise _store_unavailable(e)
    except InvalidFrequencyError as e:
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail={"error": "validation_failed", "message": str(e), "errors": {"frequency_months": str(e)}}
        )
    if cycle_dates is None:
        raise _plan_not_found(plan_id)
    return CycleDatesResponse(**cycle_dates.to_dict())


@router.get("/installment-plans/{plan_id}/invoices")
async def plan_invoices(plan_id: str, db: AsyncSession = Depends(get_db_session)) -> list[InvoiceResponse]:
    """
    Invoices generated for a plan, first phase first.
    """
    srv = ListPlanInvoicesService(InvoiceStoreSqlalchemy(db))
    try:
        invoices = await srv.execute(plan_id)
    except InvoiceStoreError as e:
        raise _store_unavailable(e)
    return [
        InvoiceResponse(
            id=inv.id,
            reference=inv.reference,
            phase_number=inv.phase_number,
            issue_date=inv.issue_date,
            due_date=inv.due_date,
            invoice_month=inv.invoice_month,
            generation_date=inv.generation_date,
            amount_excluding_tax_cents=inv.amount_excluding_tax_cents,
            amount_including_tax_cents=inv.amount_including_tax_cents,
            generation_mode=inv.generation_mode,
            status=inv.status,
            created_at=inv.created_at,
        )
        for inv in invoices
    ]


@router.post("/installment-plans/process-due")
async def process_due(
    payload: Optional[SweepRequest] = None,
    x_request_id: Optional[str] = Header(None, alias="X-Request-ID"),
    db: AsyncSession = Depends(get_db_session)
) -> SweepResponse:
    """
    Generate invoices for every plan whose next generation date has arrived.

    Meant to be called by an external scheduler; per-plan failures are reported
    in `details.errors` without failing the request.
    """
    payload = payload or SweepRequest()
    srv = ProcessDueInstallmentsService(
        invoice_store=InvoiceStoreSqlalchemy(db),
        metrics_port=MetricsAdapter(),
        logging_port=LoggingAdapter(),
    )
    try:
        summary = await srv.execute(as_of=payload.as_of, request_id=x_request_id or str(uuid.uuid4()))
    except InvoiceStoreError as e:
        raise _store_unavailable(e)
    return SweepResponse(**summary)
