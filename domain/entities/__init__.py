# import
from .installment_plan import InstallmentPlan, BillingState
from .generated_invoice import GeneratedInvoice, GenerationMode, InvoiceAmounts, InvoiceStatus
from .cycle_dates import CycleDates, OVERRIDE_FIELDS

__all__ = [
    "InstallmentPlan", "BillingState",
    "GeneratedInvoice", "GenerationMode", "InvoiceAmounts", "InvoiceStatus",
    "CycleDates", "OVERRIDE_FIELDS",
]
