class InstallmentBillingError(Exception):
    """Base error for the installment billing domain."""


class InvalidFrequencyError(InstallmentBillingError, ValueError):
    """Billing frequency is not a positive number of months."""


class InvoiceStoreError(InstallmentBillingError):
    """
    The invoice store could not complete a read or a transaction.

    Transient by nature: nothing was committed, so the caller may retry.
    """


class PlanConflictError(InvoiceStoreError):
    """Another writer advanced the plan between the locked read and the counter update."""
