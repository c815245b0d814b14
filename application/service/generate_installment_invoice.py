import time
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Mapping, Optional

from application.service.plan_locks import PlanLockRegistry, plan_locks
from domain.config import BillingCycleConfig
from domain.entities import CycleDates, GeneratedInvoice, GenerationMode, InstallmentPlan, InvoiceAmounts
from domain.exceptions import InvalidFrequencyError, InvoiceStoreError, PlanConflictError
from domain.interfaces import BoundLogger, InvoiceStore, LoggingPort, MetricsPort, NoOpLogger
from domain.services import PhaseProgressTracker, validate_manual_override, OverrideValidationResult


class GenerationOutcome(Enum):
    GENERATED = "generated"
    PLAN_NOT_FOUND = "plan_not_found"
    PHASE_LIMIT_REACHED = "phase_limit_reached"
    VALIDATION_FAILED = "validation_failed"
    DOWNPAYMENT_PENDING = "downpayment_pending"
    PERSISTENCE_FAILED = "persistence_failed"


@dataclass
class GenerationResult:
    outcome: GenerationOutcome
    plan_id: str
    invoice: Optional[GeneratedInvoice] = None
    cycle_dates: Optional[CycleDates] = None
    generated_phases: Optional[int] = None
    total_phases: Optional[int] = None
    remaining_phases: Optional[int] = None
    errors: dict[str, str] = field(default_factory=dict)
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is GenerationOutcome.GENERATED

    @property
    def phase_limit_reached(self) -> bool:
        """True when the plan can't generate again after this attempt."""
        if self.outcome is GenerationOutcome.PHASE_LIMIT_REACHED:
            return True
        return self.succeeded and self.remaining_phases == 0


class GenerateInstallmentInvoiceService:
    def __init__(
        self,
        invoice_store: InvoiceStore,
        metrics_port: Optional[MetricsPort] = None,
        logging_port: Optional[LoggingPort] = None,
        policy: Optional[BillingCycleConfig] = None,
        locks: Optional[PlanLockRegistry] = None,
    ):
        """
        Initialize the invoice generation coordinator.

        Args:
            invoice_store: Store holding plans and generated invoices (required)
            metrics_port: Metrics port for emitting metrics (optional)
            logging_port: Logging port for structured logging (optional)
            policy: Day-of-month policy for automatic dates (defaults to environment config)
            locks: Per-plan lock registry (defaults to the process-wide registry)
        """
        self.invoice_store = invoice_store
        self.metrics_port = metrics_port
        self.logging_port = logging_port
        self.policy = policy
        self.locks = locks if locks is not None else plan_locks

    async def execute(
        self,
        plan_id: str,
        mode: GenerationMode = GenerationMode.AUTO,
        override: Optional[Mapping[str, Any]] = None,
        anchor: Optional[date] = None,
        request_id: Optional[str] = None,
    ) -> GenerationResult:
        """
        Generate the next installment invoice of a plan.

        Preconditions are checked in order (plan exists, phase limit, override
        validity, and for automatic runs a settled downpayment). The invoice row,
        the phase counter and the schedule pointer are committed together or
        not at all.

        Args:
            plan_id: ID of the installment plan
            mode: AUTO derives dates from ``anchor``; MANUAL takes them from ``override``
            override: Operator-supplied date fields (MANUAL only)
            anchor: Trigger date for AUTO. When omitted, a plan with a schedule pointer
                bills the cycle it points at; otherwise today is used
            request_id: ID of the request for tracing (optional)

        Returns:
            GenerationResult describing the outcome; expected failures are never raised
        """
        start_time = time.time()
        log = self._bind_logger(request_id, plan_id, mode)
        log.info("invoice_generation_started", step="invoice_generation")

        validation = validate_manual_override(override or {}) if mode is GenerationMode.MANUAL else None

        try:
            async with self.locks.hold(plan_id):
                async with self.invoice_store.plan_transaction(plan_id) as plan:
                    result = await self._generate_locked(plan_id, plan, mode, validation, anchor, log)
        except InvoiceStoreError as e:
            log.warning(
                "invoice_generation_persistence_failed",
                step="db_persist",
                error=str(e),
                conflict=isinstance(e, PlanConflictError),
            )
            result = GenerationResult(
                outcome=GenerationOutcome.PERSISTENCE_FAILED,
                plan_id=plan_id,
                message=str(e),
            )
        except Exception as e:
            log.error(
                "invoice_generation_failed",
                step="invoice_generation",
                duration_ms=round((time.time() - start_time) * 1000, 2),
                error=str(e),
                exc_info=True,
            )
            raise

        duration = time.time() - start_time
        if self.metrics_port:
            self.metrics_port.increment_generation_total(outcome=result.outcome.value)
            self.metrics_port.observe_generation_seconds(duration)
            if result.succeeded and result.phase_limit_reached:
                self.metrics_port.increment_phase_exhausted()

        log.info(
            "invoice_generation_completed",
            step="invoice_generation",
            duration_ms=round(duration * 1000, 2),
            outcome=result.outcome.value,
            invoice_id=result.invoice.id if result.invoice else None,
            generated_phases=result.generated_phases,
            total_phases=result.total_phases,
        )
        return result

    async def _generate_locked(
        self,
        plan_id: str,
        plan: Optional[InstallmentPlan],
        mode: GenerationMode,
        validation: Optional[OverrideValidationResult],
        anchor: Optional[date],
        log: BoundLogger,
    ) -> GenerationResult:
        if plan is None:
            log.info("plan_not_found", step="eligibility")
            return GenerationResult(
                outcome=GenerationOutcome.PLAN_NOT_FOUND,
                plan_id=plan_id,
                message=f"Installment plan {plan_id} not found",
            )

        if not PhaseProgressTracker.is_generation_allowed(plan):
            log.info(
                "phase_limit_reached",
                step="eligibility",
                generated_phases=plan.generated_phases,
                total_phases=plan.total_phases,
            )
            return GenerationResult(
                outcome=GenerationOutcome.PHASE_LIMIT_REACHED,
                plan_id=plan_id,
                generated_phases=plan.generated_phases,
                total_phases=plan.total_phases,
                remaining_phases=0,
                message=(
                    f"All phases already generated ({plan.generated_phases}/{plan.total_phases}). "
                    "No more invoices can be generated for this plan."
                ),
            )

        try:
            resolved = self._resolve_cycle_dates(plan, mode, validation, anchor)
        except InvalidFrequencyError as e:
            log.warning("invalid_plan_frequency", step="cycle_dates", error=str(e))
            return GenerationResult(
                outcome=GenerationOutcome.VALIDATION_FAILED,
                plan_id=plan_id,
                errors={"frequency_months": str(e)},
                message=str(e),
            )

        if isinstance(resolved, GenerationResult):
            log.info(resolved.outcome.value, step="eligibility", errors=resolved.errors or None)
            return resolved
        cycle_dates = resolved

        phase_number = plan.generated_phases + 1
        log.info("saving_invoice", step="db_persist", phase_number=phase_number)
        invoice = await self.invoice_store.persist_generated_invoice(
            plan_id=plan.id,
            cycle_dates=cycle_dates,
            amounts=InvoiceAmounts(
                excluding_tax_cents=plan.amount_excluding_tax_cents,
                including_tax_cents=plan.amount_including_tax_cents,
            ),
            phase_number=phase_number,
            mode=mode,
        )
        await self.invoice_store.advance_plan_schedule(
            plan_id=plan.id,
            generated_phases=phase_number,
            next_invoice_month=cycle_dates.next_invoice_month,
            next_generation_date=cycle_dates.next_generation,
            expected_generated_phases=plan.generated_phases,
        )

        plan.generated_phases = phase_number
        plan.next_invoice_month = cycle_dates.next_invoice_month
        plan.next_generation_date = cycle_dates.next_generation
        remaining = PhaseProgressTracker.remaining_phases(plan)
        if remaining == 0:
            log.info("installment_plan_exhausted", step="invoice_generation", total_phases=plan.total_phases)

        return GenerationResult(
            outcome=GenerationOutcome.GENERATED,
            plan_id=plan_id,
            invoice=invoice,
            cycle_dates=cycle_dates,
            generated_phases=plan.generated_phases,
            total_phases=plan.total_phases,
            remaining_phases=remaining,
        )

    def _resolve_cycle_dates(self, plan, mode, validation, anchor):
        """CycleDates for this attempt, or the failed GenerationResult explaining why there are none."""
        if mode is GenerationMode.MANUAL:
            if not validation["is_valid"]:
                return GenerationResult(
                    outcome=GenerationOutcome.VALIDATION_FAILED,
                    plan_id=plan.id,
                    errors=validation["errors"],
                    message="Manual override dates are invalid",
                )
            return CycleDates.from_validated_override(validation["dates"])

        if not plan.downpayment_settled:
            return GenerationResult(
                outcome=GenerationOutcome.DOWNPAYMENT_PENDING,
                plan_id=plan.id,
                generated_phases=plan.generated_phases,
                total_phases=plan.total_phases,
                remaining_phases=PhaseProgressTracker.remaining_phases(plan),
                message="Downpayment has not been paid yet",
            )
        # Without an explicit anchor the plan continues from its stored schedule
        if anchor is None and plan.has_schedule_pointer:
            return CycleDates.from_schedule_pointer(plan, policy=self.policy)
        return CycleDates.from_calculator(anchor or date.today(), plan.frequency_months, policy=self.policy)

    def _bind_logger(self, request_id: Optional[str], plan_id: str, mode: GenerationMode) -> BoundLogger:
        if not self.logging_port:
            return NoOpLogger()
        return self.logging_port.bind(
            request_id=request_id or "unknown",
            plan_id=plan_id,
            mode=mode.value,
        )
