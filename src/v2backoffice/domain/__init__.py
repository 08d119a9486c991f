"""Domain models for the V2 back office."""

from .invoice_jobs import InvoiceJob
from .invoice_templates import InvoiceTemplate
from .users import User
from .workflows import Workflow

__all__ = ["InvoiceJob", "InvoiceTemplate", "User", "Workflow"]
