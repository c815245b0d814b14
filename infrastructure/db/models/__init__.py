"""
Database models package.
Import Base from here or from base.py directly.
"""
from infrastructure.db.models.base import Base

# Registering both models on the shared registry
from infrastructure.db.models.installment_plans import InstallmentPlanModel
from infrastructure.db.models.generated_invoices import GeneratedInvoiceModel

__all__ = ["Base", "InstallmentPlanModel", "GeneratedInvoiceModel"]
