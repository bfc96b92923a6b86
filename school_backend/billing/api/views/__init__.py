# billing/api/views/__init__.py

from .invoices import InvoiceViewSet
from .payments import PaymentViewSet
from .students import StudentApplyCreditView, StudentStatementView

__all__ = [
    "InvoiceViewSet",
    "PaymentViewSet",
    "StudentApplyCreditView",
    "StudentStatementView",
]
