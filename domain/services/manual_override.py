"""
Manual Override Validator

Checks an operator-supplied date set before it replaces the calculator's
derivation. Only completeness and well-formedness are checked: an override
exists precisely to diverge from the automatic schedule, so values are never
re-derived or pinned to policy days.
"""
import re
from datetime import date, datetime
from typing import Any, Mapping, Optional, TypedDict

from domain.entities import OVERRIDE_FIELDS

REQUIRED_FIELDS = (
    "issue_date",
    "due_date",
    "invoice_month",
    "next_issue_date",
    "next_due_date",
    "next_invoice_month",
    "next_generation_date",
)
OPTIONAL_FIELDS = ("generation_date",)

FIELD_LABELS = {
    "issue_date": "Issue date",
    "due_date": "Due date",
    "invoice_month": "Invoice month",
    "generation_date": "Generation date",
    "next_issue_date": "Next issue date",
    "next_due_date": "Next due date",
    "next_invoice_month": "Next invoice month",
    "next_generation_date": "Next generation date",
}

# (earlier, later) pairs within one cycle
ORDERED_PAIRS = (
    ("issue_date", "due_date"),
    ("next_issue_date", "next_due_date"),
)

_YMD = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class OverrideValidationResult(TypedDict):
    is_valid: bool
    errors: dict[str, str]
    dates: Optional[dict[str, date]]


def _parse_calendar_date(value: Any) -> Optional[date]:
    """Return the date for a YYYY-MM-DD string or date, None when malformed."""
    # datetime is a date subclass but carries a time component
    if isinstance(value, datetime):
        return None
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _YMD.match(value.strip()):
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_manual_override(payload: Mapping[str, Any]) -> OverrideValidationResult:
    """
    Validate the eight override fields of a manual generation request.

    Args:
        payload: Field name -> raw value (YYYY-MM-DD string or date). Unknown keys are ignored.

    Returns:
        OverrideValidationResult with every offending field in ``errors``;
        ``dates`` holds the parsed values (``generation_date`` may be None)
        only when the payload is valid.
    """
    errors: dict[str, str] = {}
    dates: dict[str, Optional[date]] = {}

    for field in OVERRIDE_FIELDS:
        raw = payload.get(field)
        label = FIELD_LABELS[field]
        if _is_missing(raw):
            if field in REQUIRED_FIELDS:
                errors[field] = f"{label} is required"
            else:
                dates[field] = None
            continue
        parsed = _parse_calendar_date(raw)
        if parsed is None:
            errors[field] = f"{label} must be a valid date (YYYY-MM-DD)"
            continue
        dates[field] = parsed

    # Basic ordering only, checked on pairs that both parsed
    for earlier, later in ORDERED_PAIRS:
        if dates.get(earlier) and dates.get(later) and dates[later] < dates[earlier]:
            errors.setdefault(
                later,
                f"{FIELD_LABELS[later]} must not be before {FIELD_LABELS[earlier].lower()}",
            )
    if dates.get("invoice_month") and dates.get("next_invoice_month") \
            and dates["next_invoice_month"] <= dates["invoice_month"]:
        errors.setdefault("next_invoice_month", "Next invoice month must be after invoice month")

    if errors:
        return OverrideValidationResult(is_valid=False, errors=errors, dates=None)
    return OverrideValidationResult(is_valid=True, errors={}, dates=dates)
