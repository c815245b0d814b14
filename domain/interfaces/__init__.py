from .invoice_store import InvoiceStore
from .metrics_port import MetricsPort
from .logging_port import LoggingPort, BoundLogger, NoOpLogger

__all__ = ["InvoiceStore", "MetricsPort", "LoggingPort", "BoundLogger", "NoOpLogger"]
