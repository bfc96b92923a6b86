# billing/models/payment.py

"""
======================================================
PATH: billing/models/payment.py
======================================================
PAYMENT MODEL (RECEIPT)

A received sum of money from (or on behalf of) a student.

Rules:
- receipt_number is assigned once at creation and never changes
- amount is a positive integer in minor currency units
- invoice is an optional caller hint (targeted payment)
- refund is a status transition (completed -> refunded), never a delete
- refunded is terminal: no field changes afterwards
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

User = settings.AUTH_USER_MODEL


class Payment(models.Model):
    METHOD_CASH = "cash"
    METHOD_BANK_TRANSFER = "bank_transfer"
    METHOD_CARD = "card"
    METHOD_CHEQUE = "cheque"

    METHOD_CHOICES = [
        (METHOD_CASH, "Cash"),
        (METHOD_BANK_TRANSFER, "Bank transfer"),
        (METHOD_CARD, "Card"),
        (METHOD_CHEQUE, "Cheque"),
    ]

    # Daily close buckets
    CASH_METHODS = (METHOD_CASH,)
    BANK_METHODS = (METHOD_BANK_TRANSFER, METHOD_CARD, METHOD_CHEQUE)

    STATUS_COMPLETED = "completed"
    STATUS_REFUNDED = "refunded"

    STATUS_CHOICES = [
        (STATUS_COMPLETED, "Completed"),
        (STATUS_REFUNDED, "Refunded"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    receipt_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="System-generated receipt number (RCP-YYYYMM-NNNNNN)",
    )

    student = models.ForeignKey(
        "school.Student",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    invoice = models.ForeignKey(
        "billing.Invoice",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="targeted_payments",
        help_text="Optional target invoice supplied by the cashier.",
    )

    amount = models.BigIntegerField()
    method = models.CharField(max_length=16, choices=METHOD_CHOICES)

    received_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments_received",
    )

    payment_date = models.DateField()
    transaction_reference = models.CharField(max_length=64, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=STATUS_COMPLETED,
    )

    refunded_at = models.DateTimeField(null=True, blank=True)
    refunded_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments_refunded",
    )
    refund_reason = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-payment_date", "-created_at"]
        indexes = [
            models.Index(fields=["payment_date", "status"], name="billing_pay_date_status_idx"),
            models.Index(fields=["student", "status"], name="billing_pay_student_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="chk_payment_amount_positive",
            ),
        ]

    _IMMUTABLE_FIELDS = (
        "receipt_number",
        "student_id",
        "invoice_id",
        "amount",
        "method",
        "received_by_id",
        "payment_date",
        "transaction_reference",
        "created_at",
    )

    @property
    def is_refunded(self) -> bool:
        return self.status == self.STATUS_REFUNDED

    def _validate_immutable(self, previous: "Payment"):
        if previous.status == self.STATUS_REFUNDED:
            raise ValidationError(
                f"Payment {previous.receipt_number} is refunded and can no longer change."
            )

        if self.status != previous.status and not (
            previous.status == self.STATUS_COMPLETED
            and self.status == self.STATUS_REFUNDED
        ):
            raise ValidationError(
                f"Payment status change {previous.status} -> {self.status} is not allowed."
            )

        for field in self._IMMUTABLE_FIELDS:
            if getattr(self, field) != getattr(previous, field):
                raise ValidationError(
                    f"Payment {previous.receipt_number}: field '{field}' cannot be changed."
                )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            previous = (
                Payment.objects.using(kwargs.get("using") or self._state.db)
                .filter(pk=self.pk)
                .first()
            )
            if previous is not None:
                self._validate_immutable(previous)

        if not self.receipt_number:
            raise ValidationError("receipt_number must be assigned before saving.")

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Payments cannot be deleted; refund them instead")

    def __str__(self):
        return f"{self.receipt_number} | {self.amount} | {self.status}"
