# billing/models/payment_allocation.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone


class PaymentAllocation(models.Model):
    """
    "This much of this payment applies to this invoice."

    RULES:
    - amount > 0, write-once
    - a refund flips is_reversed (False -> True) and stamps reversed_at; rows are never deleted
    - only non-reversed rows count towards invoice.amount_paid
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    payment = models.ForeignKey(
        "billing.Payment",
        on_delete=models.PROTECT,
        related_name="allocations",
    )

    invoice = models.ForeignKey(
        "billing.Invoice",
        on_delete=models.PROTECT,
        related_name="allocations",
    )

    amount = models.BigIntegerField()
    allocated_at = models.DateTimeField(default=timezone.now)

    is_reversed = models.BooleanField(default=False)
    reversed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["allocated_at", "id"]
        indexes = [
            models.Index(fields=["payment", "is_reversed"], name="billing_alloc_payment_idx"),
            models.Index(fields=["invoice", "is_reversed"], name="billing_alloc_invoice_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="chk_allocation_amount_positive",
            ),
        ]

    _IMMUTABLE_FIELDS = ("payment_id", "invoice_id", "amount", "allocated_at")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            previous = (
                PaymentAllocation.objects.using(kwargs.get("using") or self._state.db)
                .filter(pk=self.pk)
                .first()
            )
            if previous is not None:
                for field in self._IMMUTABLE_FIELDS:
                    if getattr(self, field) != getattr(previous, field):
                        raise ValidationError(
                            f"Allocation field '{field}' cannot be changed."
                        )
                if previous.is_reversed:
                    raise ValidationError("A reversed allocation cannot change again.")

        if self.is_reversed and self.reversed_at is None:
            self.reversed_at = timezone.now()

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Allocations cannot be deleted; reverse them instead")

    def __str__(self):
        flag = " (reversed)" if self.is_reversed else ""
        return f"{self.payment_id} -> {self.invoice_id} | {self.amount}{flag}"
