# billing/models/invoice_adjustment.py

"""
======================================================
PATH: billing/models/invoice_adjustment.py
======================================================
INVOICE ADJUSTMENT (APPEND-ONLY)

Signed change to an invoice's total:
- positive amount increases the balance (late_fee)
- negative amount decreases it (discount, credit_note, write_off)

Each row is the audit trail for one change to Invoice.discount /
Invoice.late_fee / Invoice.adjustments_total.
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class InvoiceAdjustment(models.Model):
    KIND_DISCOUNT = "discount"
    KIND_LATE_FEE = "late_fee"
    KIND_CREDIT_NOTE = "credit_note"
    KIND_WRITE_OFF = "write_off"

    KIND_CHOICES = [
        (KIND_DISCOUNT, "Discount"),
        (KIND_LATE_FEE, "Late fee"),
        (KIND_CREDIT_NOTE, "Credit note"),
        (KIND_WRITE_OFF, "Write-off"),
    ]

    # kind -> required sign of amount
    INCREASING_KINDS = (KIND_LATE_FEE,)
    DECREASING_KINDS = (KIND_DISCOUNT, KIND_CREDIT_NOTE, KIND_WRITE_OFF)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    invoice = models.ForeignKey(
        "billing.Invoice",
        on_delete=models.PROTECT,
        related_name="adjustments",
    )

    kind = models.CharField(max_length=16, choices=KIND_CHOICES)
    amount = models.BigIntegerField()
    reason = models.CharField(max_length=255)

    applied_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoice_adjustments",
    )
    applied_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["applied_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=~Q(amount=0),
                name="chk_adjustment_amount_non_zero",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Invoice adjustments are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Invoice adjustments cannot be deleted")

    def __str__(self):
        return f"{self.invoice_id} | {self.kind} | {self.amount}"
