# billing/models/invoice.py

"""
======================================================
PATH: billing/models/invoice.py
======================================================
INVOICE MODEL

A billing obligation for a student.

All money columns are integer minor currency units (e.g. paisa).

Derived columns (always recomputed, never typed in):
- total       = subtotal - discount + late_fee + adjustments_total
- amount_paid = sum(active allocations)
- balance_due = total - amount_paid

Audit guarantees:
- Never physically deleted
- Identity fields are immutable once created
- amount_paid / balance_due / status are written by the allocation engine only
- version is bumped on every balance write (optimistic compare-and-set)
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

User = settings.AUTH_USER_MODEL


class Invoice(models.Model):
    STATUS_DRAFT = "draft"
    STATUS_SENT = "sent"
    STATUS_PAID = "paid"
    STATUS_OVERDUE = "overdue"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_SENT, "Sent"),
        (STATUS_PAID, "Paid"),
        (STATUS_OVERDUE, "Overdue"),
    ]

    # Statuses that can absorb money.
    OPEN_STATUSES = (STATUS_SENT, STATUS_OVERDUE)

    KIND_RECURRING = "recurring"
    KIND_ONE_OFF = "one_off"

    KIND_CHOICES = [
        (KIND_RECURRING, "Recurring"),
        (KIND_ONE_OFF, "One-off"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    invoice_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="System-generated invoice number (INV-YYYYMM-NNNN)",
    )

    student = models.ForeignKey(
        "school.Student",
        on_delete=models.PROTECT,
        related_name="invoices",
    )

    issue_date = models.DateField()
    due_date = models.DateField()

    subtotal = models.BigIntegerField(default=0)
    discount = models.BigIntegerField(default=0)
    late_fee = models.BigIntegerField(default=0)
    adjustments_total = models.BigIntegerField(default=0)
    total = models.BigIntegerField(default=0)
    amount_paid = models.BigIntegerField(default=0)
    balance_due = models.BigIntegerField(default=0)

    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=STATUS_SENT,
    )

    kind = models.CharField(
        max_length=16,
        choices=KIND_CHOICES,
        default=KIND_ONE_OFF,
    )

    billing_period_start = models.DateField(null=True, blank=True)
    billing_period_end = models.DateField(null=True, blank=True)

    parent_invoice = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="child_invoice",
        help_text="Previous invoice in a recurring chain (at most one child per parent).",
    )

    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoices_created",
    )

    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-issue_date", "-created_at"]
        indexes = [
            models.Index(fields=["student", "status"], name="billing_inv_student_status_idx"),
            models.Index(fields=["due_date", "issue_date"], name="billing_inv_due_issue_idx"),
            models.Index(fields=["status"], name="billing_inv_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_paid__gte=0),
                name="chk_invoice_amount_paid_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(balance_due__gte=0),
                name="chk_invoice_balance_due_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(amount_paid__lte=F("total")),
                name="chk_invoice_amount_paid_lte_total",
            ),
            models.CheckConstraint(
                condition=Q(billing_period_end__isnull=True)
                | Q(billing_period_start__isnull=True)
                | Q(billing_period_end__gte=F("billing_period_start")),
                name="chk_invoice_billing_period_order",
            ),
        ]

    _IMMUTABLE_FIELDS = (
        "invoice_number",
        "student_id",
        "issue_date",
        "subtotal",
        "kind",
        "parent_invoice_id",
        "created_by_id",
    )

    # ----------------------------------------------
    # Derived arithmetic
    # ----------------------------------------------
    @staticmethod
    def compute_total(*, subtotal: int, discount: int, late_fee: int, adjustments_total: int) -> int:
        return subtotal - discount + late_fee + adjustments_total

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES and self.balance_due > 0

    def _validate_arithmetic(self):
        expected_total = self.compute_total(
            subtotal=self.subtotal,
            discount=self.discount,
            late_fee=self.late_fee,
            adjustments_total=self.adjustments_total,
        )
        if self.total != expected_total:
            raise ValidationError(
                f"Invoice total {self.total} does not match its components ({expected_total})."
            )
        if self.balance_due != self.total - self.amount_paid:
            raise ValidationError(
                "Invoice balance_due must equal total - amount_paid."
            )
        if self.balance_due < 0:
            raise ValidationError("Invoice balance_due cannot be negative.")

    def _validate_immutable(self, previous: "Invoice"):
        for field in self._IMMUTABLE_FIELDS:
            if getattr(self, field) != getattr(previous, field):
                raise ValidationError(
                    f"Invoice {previous.invoice_number}: field '{field}' cannot be changed."
                )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            previous = (
                Invoice.objects.using(kwargs.get("using") or self._state.db)
                .filter(pk=self.pk)
                .first()
            )
            if previous is not None:
                self._validate_immutable(previous)

        if not self.invoice_number:
            raise ValidationError("invoice_number must be assigned before saving.")

        self._validate_arithmetic()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Invoices are permanent ledger records and cannot be deleted")

    def __str__(self):
        return f"{self.invoice_number} | {self.total} | {self.status}"
