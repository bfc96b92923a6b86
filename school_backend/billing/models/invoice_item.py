# billing/models/invoice_item.py

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

User = settings.AUTH_USER_MODEL


class InvoiceItem(models.Model):
    """
    A billed line on an invoice.

    RULES:
    - total = quantity * unit_price (minor units)
    - Write-once: created together with the invoice
    - teacher is the payout attribution key (copied from the subject at billing time)
    """

    TYPE_TUITION = "tuition"
    TYPE_ADMISSION = "admission"
    TYPE_EXAM = "exam"
    TYPE_OTHER = "other"

    TYPE_CHOICES = [
        (TYPE_TUITION, "Tuition"),
        (TYPE_ADMISSION, "Admission"),
        (TYPE_EXAM, "Exam"),
        (TYPE_OTHER, "Other"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    invoice = models.ForeignKey(
        "billing.Invoice",
        on_delete=models.PROTECT,
        related_name="items",
    )

    description = models.CharField(max_length=255)
    item_type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_TUITION)

    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.BigIntegerField()
    total = models.BigIntegerField()

    subject = models.ForeignKey(
        "school.Subject",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="invoice_items",
    )

    teacher = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="billed_items",
    )

    class Meta:
        ordering = ["invoice", "id"]
        indexes = [
            models.Index(fields=["teacher"], name="billing_item_teacher_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gte=1),
                name="chk_invoice_item_quantity_positive",
            ),
            models.CheckConstraint(
                condition=Q(unit_price__gte=0),
                name="chk_invoice_item_unit_price_non_negative",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Invoice items are immutable once created")

        if self.total != self.quantity * self.unit_price:
            raise ValidationError("Invoice item total must equal quantity * unit_price")

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Invoice items cannot be deleted")

    def __str__(self):
        return f"{self.invoice_id} | {self.description} | {self.total}"
