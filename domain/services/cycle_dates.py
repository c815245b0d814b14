"""
Cycle Date Calculator

Derives the dates an installment invoice carries from an anchor date and the
plan's billing frequency. Every derived date is pinned to a configured day of
month, so the anchor's own day never leaks into the schedule.
"""
import re
from datetime import date
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from domain.config import BillingCycleConfig, get_billing_config
from domain.entities.cycle_dates import CycleDates
from domain.exceptions import InvalidFrequencyError

_FREQUENCY_PATTERN = re.compile(r"^\s*(-?\d+)\s*(?:month(?:\(s\)|s)?)?\s*$", re.IGNORECASE)


def parse_frequency_months(frequency: Union[int, str, None]) -> int:
    """
    Normalize a billing frequency to a number of months.

    Accepts an int or the package text form ("1 month(s)", "3 months", "6").
    Missing values default to monthly billing.

    Raises:
        InvalidFrequencyError: value is not a positive whole number of months
    """
    if frequency is None or (isinstance(frequency, str) and not frequency.strip()):
        return 1

    if isinstance(frequency, bool):
        raise InvalidFrequencyError(f"Invalid billing frequency: {frequency!r}")

    if isinstance(frequency, int):
        months = frequency
    else:
        match = _FREQUENCY_PATTERN.match(str(frequency))
        if not match:
            raise InvalidFrequencyError(f"Invalid billing frequency: {frequency!r}")
        months = int(match.group(1))

    if months < 1:
        raise InvalidFrequencyError(f"Billing frequency must be at least 1 month, got {months}")
    return months


def month_start(value: date, months_ahead: int = 0, day: int = 1) -> date:
    """First day (or the given pinned day) of the month ``months_ahead`` after ``value``'s month."""
    return value.replace(day=1) + relativedelta(months=months_ahead, day=day)


def compute_cycle_dates(
    anchor: date,
    frequency_months: Union[int, str],
    policy: Optional[BillingCycleConfig] = None,
) -> CycleDates:
    """
    Compute the current and following cycle dates for a generation triggered on ``anchor``.

    With the default policy (1st / 5th / 25th, due one month after the billed month):
        anchor 2026-02-09, monthly ->
            issue 2026-02-09, invoice_month 2026-03-01, generation 2026-03-25, due 2026-04-05
            next_invoice_month 2026-04-01, next_generation 2026-04-25, next_due 2026-05-05

    Args:
        anchor: Trigger date; becomes the issue date of the invoice created now
        frequency_months: Months between billed months (int or "N month(s)")
        policy: Day-of-month policy (defaults to the environment configuration)

    Returns:
        CycleDates for this cycle and the next one

    Raises:
        InvalidFrequencyError: frequency is zero, negative or unparseable
    """
    months = parse_frequency_months(frequency_months)
    policy = policy or get_billing_config()
    return _cycle_for(anchor, month_start(anchor, 1, policy.invoice_month_day), months, policy)


def compute_cycle_dates_from_pointer(
    next_invoice_month: Optional[date],
    next_generation_date: Optional[date],
    frequency_months: Union[int, str],
    policy: Optional[BillingCycleConfig] = None,
) -> CycleDates:
    """
    Cycle dates for the cycle a plan's schedule pointer already announced.

    The stored ``next_invoice_month`` is billed as is (falling back to the month
    of ``next_generation_date``), the stored ``next_generation_date`` becomes the
    issue date, and the following cycle is ``frequency_months`` after it. A run
    that happens late still bills the scheduled month, so no month is skipped.

        pointer 2026-04-01 / 2026-04-25, monthly ->
            issue 2026-04-25, invoice_month 2026-04-01, generation 2026-04-25, due 2026-05-05
            next_invoice_month 2026-05-01, next_generation 2026-05-25, next_due 2026-06-05

    Raises:
        ValueError: both pointer fields are empty
        InvalidFrequencyError: frequency is zero, negative or unparseable
    """
    if next_invoice_month is None and next_generation_date is None:
        raise ValueError("Plan has no schedule pointer")
    months = parse_frequency_months(frequency_months)
    policy = policy or get_billing_config()

    invoice_month = month_start(next_invoice_month or next_generation_date, 0, policy.invoice_month_day)
    issue = next_generation_date or month_start(invoice_month, 0, policy.generation_day)
    return _cycle_for(issue, invoice_month, months, policy)


def _cycle_for(issue: date, invoice_month: date, months: int, policy: BillingCycleConfig) -> CycleDates:
    generation = month_start(invoice_month, 0, policy.generation_day)
    due = month_start(invoice_month, policy.due_month_offset, policy.due_day)

    next_invoice_month = month_start(invoice_month, months, policy.invoice_month_day)
    next_generation = month_start(next_invoice_month, 0, policy.generation_day)
    next_due = month_start(next_invoice_month, policy.due_month_offset, policy.due_day)

    return CycleDates(
        issue=issue,
        due=due,
        invoice_month=invoice_month,
        generation=generation,
        # The automatic run issues on the day it generates
        next_issue=next_generation,
        next_due=next_due,
        next_invoice_month=next_invoice_month,
        next_generation=next_generation,
    )
