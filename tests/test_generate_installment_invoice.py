import asyncio
from datetime import date

import pytest

from application.service.generate_installment_invoice import (
    GenerateInstallmentInvoiceService,
    GenerationOutcome,
)
from application.service.plan_locks import PlanLockRegistry
from domain.entities import GenerationMode
from domain.exceptions import PlanConflictError
from domain.interfaces import InvoiceStore, LoggingPort, MetricsPort


@pytest.fixture
def service_for(default_policy):
    def _service_for(store, **kwargs):
        return GenerateInstallmentInvoiceService(
            invoice_store=store,
            policy=default_policy,
            locks=PlanLockRegistry(),
            **kwargs,
        )
    return _service_for


class TestAutomaticGeneration:

    @pytest.mark.asyncio
    async def test_generates_first_phase(self, make_plan, make_store, service_for):
        plan = make_plan(total_phases=3)
        store = make_store(plan)

        result = await service_for(store).execute(plan.id, mode=GenerationMode.AUTO, anchor=date(2026, 2, 9))

        assert result.outcome is GenerationOutcome.GENERATED
        assert result.succeeded
        assert result.generated_phases == 1
        assert result.remaining_phases == 2
        assert result.phase_limit_reached is False
        invoice = result.invoice
        assert invoice.phase_number == 1
        assert invoice.issue_date == date(2026, 2, 9)
        assert invoice.invoice_month == date(2026, 3, 1)
        assert invoice.generation_date == date(2026, 3, 25)
        assert invoice.due_date == date(2026, 4, 5)
        assert invoice.amount_excluding_tax_cents == 25000
        assert invoice.amount_including_tax_cents == 30000
        assert invoice.generation_mode == "auto"
        assert invoice.status == "unpaid"

        stored = store.plans[plan.id]
        assert stored.generated_phases == 1
        assert stored.next_invoice_month == date(2026, 4, 1)
        assert stored.next_generation_date == date(2026, 4, 25)
        assert store.commits == 1

    @pytest.mark.asyncio
    async def test_final_phase_reports_limit_reached(self, make_plan, make_store, service_for):
        plan = make_plan(total_phases=3, generated_phases=2)
        store = make_store(plan)

        result = await service_for(store).execute(plan.id, anchor=date(2026, 5, 3))

        assert result.outcome is GenerationOutcome.GENERATED
        assert result.generated_phases == 3
        assert result.remaining_phases == 0
        assert result.phase_limit_reached is True
        assert result.invoice.phase_number == 3
        # Schedule pointer still moves on the last phase
        assert store.plans[plan.id].next_invoice_month == date(2026, 7, 1)

    @pytest.mark.asyncio
    async def test_unbounded_plan_keeps_generating(self, make_plan, make_store, service_for):
        plan = make_plan(total_phases=None, generated_phases=40)
        store = make_store(plan)

        result = await service_for(store).execute(plan.id, anchor=date(2026, 2, 9))

        assert result.succeeded
        assert result.generated_phases == 41
        assert result.remaining_phases is None
        assert result.phase_limit_reached is False

    @pytest.mark.asyncio
    async def test_unpaid_downpayment_blocks_generation(self, make_plan, make_store, service_for):
        plan = make_plan(downpayment_amount_cents=50000)
        store = make_store(plan)

        result = await service_for(store).execute(plan.id, anchor=date(2026, 2, 9))

        assert result.outcome is GenerationOutcome.DOWNPAYMENT_PENDING
        assert store.invoices == []
        assert store.plans[plan.id].generated_phases == 0

    @pytest.mark.asyncio
    async def test_paid_downpayment_allows_generation(self, paid_downpayment_plan, make_store, service_for):
        store = make_store(paid_downpayment_plan)

        result = await service_for(store).execute(paid_downpayment_plan.id, anchor=date(2026, 2, 9))

        assert result.succeeded

    @pytest.mark.asyncio
    async def test_invalid_stored_frequency(self, make_plan, make_store, service_for):
        plan = make_plan(frequency_months=0)
        store = make_store(plan)

        result = await service_for(store).execute(plan.id, anchor=date(2026, 2, 9))

        assert result.outcome is GenerationOutcome.VALIDATION_FAILED
        assert "frequency_months" in result.errors
        assert store.invoices == []

    @pytest.mark.asyncio
    async def test_without_anchor_continues_from_stored_schedule(self, make_plan, make_store, service_for):
        plan = make_plan(
            generated_phases=1,
            next_invoice_month=date(2026, 4, 1),
            next_generation_date=date(2026, 4, 25),
        )
        store = make_store(plan)

        result = await service_for(store).execute(plan.id)

        invoice = result.invoice
        assert invoice.phase_number == 2
        assert invoice.issue_date == date(2026, 4, 25)
        assert invoice.invoice_month == date(2026, 4, 1)
        assert invoice.due_date == date(2026, 5, 5)
        stored = store.plans[plan.id]
        assert stored.next_invoice_month == date(2026, 5, 1)
        assert stored.next_generation_date == date(2026, 5, 25)

    @pytest.mark.asyncio
    async def test_explicit_anchor_overrides_stored_schedule(self, make_plan, make_store, service_for):
        plan = make_plan(
            generated_phases=1,
            next_invoice_month=date(2026, 4, 1),
            next_generation_date=date(2026, 4, 25),
        )
        store = make_store(plan)

        result = await service_for(store).execute(plan.id, anchor=date(2026, 6, 10))

        assert result.invoice.invoice_month == date(2026, 7, 1)
        assert store.plans[plan.id].next_invoice_month == date(2026, 8, 1)

    @pytest.mark.asyncio
    async def test_consecutive_runs_bill_consecutive_cycles(self, make_plan, make_store, service_for):
        plan = make_plan(total_phases=3, frequency_months=2)
        store = make_store(plan)
        service = service_for(store)

        await service.execute(plan.id, anchor=date(2026, 2, 9))
        await service.execute(plan.id)
        await service.execute(plan.id)

        assert [invoice.invoice_month for invoice in store.invoices] == [
            date(2026, 3, 1),
            date(2026, 5, 1),
            date(2026, 7, 1),
        ]
        assert [invoice.issue_date for invoice in store.invoices] == [
            date(2026, 2, 9),
            date(2026, 5, 25),
            date(2026, 7, 25),
        ]


class TestManualGeneration:

    @pytest.mark.asyncio
    async def test_override_dates_are_used_verbatim(self, make_plan, make_store, service_for, valid_override):
        plan = make_plan(frequency_months=6)
        store = make_store(plan)
        valid_override["due_date"] = "2026-04-17"

        result = await service_for(store).execute(plan.id, mode=GenerationMode.MANUAL, override=valid_override)

        assert result.succeeded
        assert result.invoice.due_date == date(2026, 4, 17)
        assert result.invoice.generation_mode == "manual"
        # Frequency is ignored: the override's next cycle wins
        assert store.plans[plan.id].next_invoice_month == date(2026, 4, 1)
        assert store.plans[plan.id].next_generation_date == date(2026, 4, 25)

    @pytest.mark.asyncio
    async def test_generation_date_defaults_to_issue_date(self, make_plan, make_store, service_for, valid_override):
        plan = make_plan()
        store = make_store(plan)
        del valid_override["generation_date"]

        result = await service_for(store).execute(plan.id, mode=GenerationMode.MANUAL, override=valid_override)

        assert result.invoice.generation_date == date(2026, 2, 9)

    @pytest.mark.asyncio
    async def test_invalid_override_persists_nothing(self, make_plan, make_store, service_for, valid_override):
        plan = make_plan()
        store = make_store(plan)
        valid_override["due_date"] = ""
        valid_override["next_due_date"] = "05/05/2026"

        result = await service_for(store).execute(plan.id, mode=GenerationMode.MANUAL, override=valid_override)

        assert result.outcome is GenerationOutcome.VALIDATION_FAILED
        assert result.errors == {
            "due_date": "Due date is required",
            "next_due_date": "Next due date must be a valid date (YYYY-MM-DD)",
        }
        assert store.invoices == []
        assert store.plans[plan.id].generated_phases == 0

    @pytest.mark.asyncio
    async def test_manual_generation_ignores_downpayment(self, make_plan, make_store, service_for, valid_override):
        plan = make_plan(downpayment_amount_cents=50000)
        store = make_store(plan)

        result = await service_for(store).execute(plan.id, mode=GenerationMode.MANUAL, override=valid_override)

        assert result.succeeded


class TestPreconditions:

    @pytest.mark.asyncio
    async def test_unknown_plan(self, make_store, service_for):
        result = await service_for(make_store()).execute("missing-plan", anchor=date(2026, 2, 9))

        assert result.outcome is GenerationOutcome.PLAN_NOT_FOUND
        assert "missing-plan" in result.message

    @pytest.mark.asyncio
    async def test_phase_limit_is_idempotent(self, make_plan, make_store, service_for):
        plan = make_plan(total_phases=3, generated_phases=3)
        store = make_store(plan)
        service = service_for(store)

        for _ in range(3):
            result = await service.execute(plan.id, anchor=date(2026, 2, 9))
            assert result.outcome is GenerationOutcome.PHASE_LIMIT_REACHED
            assert result.generated_phases == 3
            assert result.total_phases == 3
            assert result.phase_limit_reached is True

        assert store.plans[plan.id].generated_phases == 3
        assert store.invoices == []

    @pytest.mark.asyncio
    async def test_phase_limit_checked_before_override_validation(self, make_plan, make_store, service_for):
        plan = make_plan(total_phases=2, generated_phases=2)
        store = make_store(plan)

        result = await service_for(store).execute(plan.id, mode=GenerationMode.MANUAL, override={})

        assert result.outcome is GenerationOutcome.PHASE_LIMIT_REACHED

    @pytest.mark.asyncio
    async def test_not_found_checked_before_override_validation(self, make_store, service_for):
        result = await service_for(make_store()).execute("missing-plan", mode=GenerationMode.MANUAL, override={})

        assert result.outcome is GenerationOutcome.PLAN_NOT_FOUND


class TestAtomicity:

    @pytest.mark.asyncio
    async def test_failed_schedule_update_rolls_back_invoice(self, make_plan, make_store, service_for):
        plan = make_plan(next_generation_date=date(2026, 2, 25))
        store = make_store(plan)
        store.fail_advance = True

        result = await service_for(store).execute(plan.id, anchor=date(2026, 2, 9))

        assert result.outcome is GenerationOutcome.PERSISTENCE_FAILED
        assert store.invoices == []
        assert store.plans[plan.id].generated_phases == 0
        assert store.plans[plan.id].next_generation_date == date(2026, 2, 25)
        assert store.rollbacks == 1

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self, mocker, make_plan, make_store, service_for):
        store = make_store(make_plan())
        mocker.patch.object(store, "persist_generated_invoice", side_effect=RuntimeError("boom"))
        plan_id = next(iter(store.plans))

        with pytest.raises(RuntimeError):
            await service_for(store).execute(plan_id, anchor=date(2026, 2, 9))

        assert store.plans[plan_id].generated_phases == 0


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_racing_requests_generate_last_phase_once(self, make_plan, make_store, service_for, valid_override):
        plan = make_plan(total_phases=3, generated_phases=2)
        store = make_store(plan)
        service = service_for(store)

        results = await asyncio.gather(
            service.execute(plan.id, mode=GenerationMode.AUTO, anchor=date(2026, 2, 9)),
            service.execute(plan.id, mode=GenerationMode.MANUAL, override=valid_override),
        )

        outcomes = sorted(result.outcome.value for result in results)
        assert outcomes == ["generated", "phase_limit_reached"]
        assert store.plans[plan.id].generated_phases == 3
        assert len(store.invoices) == 1

    @pytest.mark.asyncio
    async def test_many_racers_never_exceed_total(self, make_plan, make_store, service_for):
        plan = make_plan(total_phases=4, generated_phases=0)
        store = make_store(plan)
        # Separate coordinators sharing one registry, like concurrent requests
        locks = PlanLockRegistry()
        services = [
            GenerateInstallmentInvoiceService(invoice_store=store, locks=locks) for _ in range(10)
        ]

        results = await asyncio.gather(*(s.execute(plan.id, anchor=date(2026, 2, 9)) for s in services))

        assert sum(result.succeeded for result in results) == 4
        assert store.plans[plan.id].generated_phases == 4
        assert sorted(invoice.phase_number for invoice in store.invoices) == [1, 2, 3, 4]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_racers_on_stored_schedule_bill_distinct_months(self, make_plan, make_store):
        plan = make_plan(total_phases=3, next_generation_date=date(2026, 3, 25))
        store = make_store(plan)
        locks = PlanLockRegistry()
        services = [GenerateInstallmentInvoiceService(invoice_store=store, locks=locks) for _ in range(5)]

        await asyncio.gather(*(s.execute(plan.id) for s in services))

        assert sorted(invoice.invoice_month for invoice in store.invoices) == [
            date(2026, 3, 1),
            date(2026, 4, 1),
            date(2026, 5, 1),
        ]

    @pytest.mark.asyncio
    async def test_lock_registry_is_emptied_after_each_call(self, make_store):
        store = make_store()
        locks = PlanLockRegistry()
        service = GenerateInstallmentInvoiceService(invoice_store=store, locks=locks)

        for index in range(200):
            result = await service.execute(f"missing-{index}")
            assert result.outcome is GenerationOutcome.PLAN_NOT_FOUND

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_counter_conflict_becomes_persistence_failure(self, mocker, make_plan, service_for):
        plan = make_plan()
        store = mocker.AsyncMock(spec=InvoiceStore)
        transaction = mocker.MagicMock()
        transaction.__aenter__ = mocker.AsyncMock(return_value=plan)
        transaction.__aexit__ = mocker.AsyncMock(return_value=False)
        store.plan_transaction = mocker.MagicMock(return_value=transaction)
        store.advance_plan_schedule.side_effect = PlanConflictError("changed concurrently")

        result = await service_for(store).execute(plan.id, anchor=date(2026, 2, 9))

        assert result.outcome is GenerationOutcome.PERSISTENCE_FAILED
        assert "changed concurrently" in result.message


class TestObservability:

    @pytest.mark.asyncio
    async def test_metrics_for_final_phase(self, mocker, make_plan, make_store, service_for):
        plan = make_plan(total_phases=1)
        metrics = mocker.Mock(spec=MetricsPort)

        await service_for(make_store(plan), metrics_port=metrics).execute(plan.id, anchor=date(2026, 2, 9))

        metrics.increment_generation_total.assert_called_once_with(outcome="generated")
        metrics.increment_phase_exhausted.assert_called_once()
        metrics.observe_generation_seconds.assert_called_once()

    @pytest.mark.asyncio
    async def test_metrics_for_rejection(self, mocker, make_plan, make_store, service_for):
        plan = make_plan(total_phases=1, generated_phases=1)
        metrics = mocker.Mock(spec=MetricsPort)

        await service_for(make_store(plan), metrics_port=metrics).execute(plan.id, anchor=date(2026, 2, 9))

        metrics.increment_generation_total.assert_called_once_with(outcome="phase_limit_reached")
        metrics.increment_phase_exhausted.assert_not_called()

    @pytest.mark.asyncio
    async def test_logger_is_bound_to_request_and_plan(self, mocker, make_plan, make_store, service_for):
        plan = make_plan()
        logging_port = mocker.Mock(spec=LoggingPort)
        bound = logging_port.bind.return_value

        await service_for(make_store(plan), logging_port=logging_port).execute(
            plan.id, anchor=date(2026, 2, 9), request_id="req-42"
        )

        logging_port.bind.assert_called_once_with(request_id="req-42", plan_id=plan.id, mode="auto")
        events = [call.args[0] for call in bound.info.call_args_list]
        assert events[0] == "invoice_generation_started"
        assert "saving_invoice" in events
        assert events[-1] == "invoice_generation_completed"
