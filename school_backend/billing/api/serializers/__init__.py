# billing/api/serializers/__init__.py

from .fields import MoneyField
from .invoice import (
    InvoiceAdjustmentCommandSerializer,
    InvoiceCreateSerializer,
    InvoiceReadSerializer,
    InvoiceSummarySerializer,
)
from .payment import (
    PaymentCreateSerializer,
    PaymentReadSerializer,
    PaymentRefundCommandSerializer,
)
from .statement import StatementSerializer

__all__ = [
    "MoneyField",
    "InvoiceAdjustmentCommandSerializer",
    "InvoiceCreateSerializer",
    "InvoiceReadSerializer",
    "InvoiceSummarySerializer",
    "PaymentCreateSerializer",
    "PaymentReadSerializer",
    "PaymentRefundCommandSerializer",
    "StatementSerializer",
]
