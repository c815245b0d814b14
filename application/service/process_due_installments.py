import time
from datetime import date
from typing import Optional, TypedDict

from application.service.generate_installment_invoice import GenerateInstallmentInvoiceService
from domain.config import get_sweep_config
from domain.entities import GenerationMode
from domain.interfaces import InvoiceStore, LoggingPort, MetricsPort, NoOpLogger


class SweepSummary(TypedDict):
    as_of: date
    total_due: int
    processed: int
    errors: int
    details: dict[str, list[dict]]


class ProcessDueInstallmentsService:
    def __init__(
        self,
        invoice_store: InvoiceStore,
        coordinator: Optional[GenerateInstallmentInvoiceService] = None,
        metrics_port: Optional[MetricsPort] = None,
        logging_port: Optional[LoggingPort] = None,
        batch_limit: Optional[int] = None,
    ):
        """
        Initialize the due-installment sweep.

        Args:
            invoice_store: Store holding plans and generated invoices (required)
            coordinator: Generation coordinator (built from the same ports when omitted)
            metrics_port: Metrics port for emitting metrics (optional)
            logging_port: Logging port for structured logging (optional)
            batch_limit: Max plans handled per sweep (defaults to SWEEP_BATCH_LIMIT)
        """
        self.invoice_store = invoice_store
        self.coordinator = coordinator or GenerateInstallmentInvoiceService(
            invoice_store=invoice_store,
            metrics_port=metrics_port,
            logging_port=logging_port,
        )
        self.metrics_port = metrics_port
        self.logging_port = logging_port
        self.batch_limit = batch_limit or get_sweep_config().batch_limit

    async def execute(self, as_of: Optional[date] = None, request_id: Optional[str] = None) -> SweepSummary:
        """
        Generate invoices for every plan whose next generation date has arrived.

        Only plans that can still generate and whose downpayment is settled are
        selected. Plans are handled one by one; a failing plan is reported in the
        summary and does not stop the sweep.

        Args:
            as_of: Sweep date; plans due on or before it are billed for the cycle
                their schedule pointer announces (defaults to today)
            request_id: ID of the triggering request for tracing (optional)
        """
        as_of = as_of or date.today()
        start_time = time.time()
        log = (
            self.logging_port.bind(request_id=request_id or "unknown", step="installment_sweep")
            if self.logging_port else NoOpLogger()
        )

        plan_ids = await self.invoice_store.list_due_plan_ids(as_of, limit=self.batch_limit)
        log.info("installment_sweep_started", as_of=as_of.isoformat(), total_due=len(plan_ids))

        processed: list[dict] = []
        errors: list[dict] = []
        for plan_id in plan_ids:
            try:
                result = await self.coordinator.execute(
                    plan_id,
                    mode=GenerationMode.AUTO,
                    request_id=request_id,
                )
            except Exception as e:
                log.error("installment_sweep_plan_failed", plan_id=plan_id, error=str(e), exc_info=True)
                errors.append({"plan_id": plan_id, "outcome": "error", "error": str(e)})
                continue

            if result.succeeded:
                processed.append({
                    "plan_id": plan_id,
                    "invoice_id": result.invoice.id,
                    "generated_phases": result.generated_phases,
                    "total_phases": result.total_phases,
                    "phase_limit_reached": result.phase_limit_reached,
                    "next_generation_date": result.cycle_dates.next_generation.isoformat(),
                    "next_invoice_month": result.cycle_dates.next_invoice_month.isoformat(),
                })
            else:
                errors.append({
                    "plan_id": plan_id,
                    "outcome": result.outcome.value,
                    "error": result.message,
                })

        if self.metrics_port:
            self.metrics_port.increment_sweep_runs()

        log.info(
            "installment_sweep_completed",
            duration_ms=round((time.time() - start_time) * 1000, 2),
            processed=len(processed),
            errors=len(errors),
        )
        return SweepSummary(
            as_of=as_of,
            total_due=len(plan_ids),
            processed=len(processed),
            errors=len(errors),
            details={"processed": processed, "errors": errors},
        )
