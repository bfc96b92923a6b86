"""
======================================================
PATH: billing/migrations/0001_initial.py
======================================================
MIGRATION: CREATE BILLING LEDGER

Creates:
- DocumentSequence (receipt / invoice numbering)
- Invoice, InvoiceItem, InvoiceAdjustment
- Payment, PaymentAllocation
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("school", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="DocumentSequence",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("key", models.CharField(max_length=32, unique=True)),
                ("last_value", models.PositiveBigIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["key"],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "invoice_number",
                    models.CharField(
                        help_text="System-generated invoice number (INV-YYYYMM-NNNN)",
                        max_length=32,
                        unique=True,
                    ),
                ),
                ("issue_date", models.DateField()),
                ("due_date", models.DateField()),
                ("subtotal", models.BigIntegerField(default=0)),
                ("discount", models.BigIntegerField(default=0)),
                ("late_fee", models.BigIntegerField(default=0)),
                ("adjustments_total", models.BigIntegerField(default=0)),
                ("total", models.BigIntegerField(default=0)),
                ("amount_paid", models.BigIntegerField(default=0)),
                ("balance_due", models.BigIntegerField(default=0)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("sent", "Sent"),
                            ("paid", "Paid"),
                            ("overdue", "Overdue"),
                        ],
                        default="sent",
                        max_length=16,
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[("recurring", "Recurring"), ("one_off", "One-off")],
                        default="one_off",
                        max_length=16,
                    ),
                ),
                ("billing_period_start", models.DateField(blank=True, null=True)),
                ("billing_period_end", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="invoices_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "parent_invoice",
                    models.OneToOneField(
                        blank=True,
                        help_text="Previous invoice in a recurring chain (at most one child per parent).",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="child_invoice",
                        to="billing.invoice",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoices",
                        to="school.student",
                    ),
                ),
            ],
            options={
                "ordering": ["-issue_date", "-created_at"],
                "indexes": [
                    models.Index(
                        fields=["student", "status"],
                        name="billing_inv_student_status_idx",
                    ),
                    models.Index(
                        fields=["due_date", "issue_date"],
                        name="billing_inv_due_issue_idx",
                    ),
                    models.Index(fields=["status"], name="billing_inv_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_paid__gte", 0)),
                        name="chk_invoice_amount_paid_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("balance_due__gte", 0)),
                        name="chk_invoice_balance_due_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount_paid__lte", models.F("total"))),
                        name="chk_invoice_amount_paid_lte_total",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("billing_period_end__isnull", True),
                            ("billing_period_start__isnull", True),
                            ("billing_period_end__gte", models.F("billing_period_start")),
                            _connector="OR",
                        ),
                        name="chk_invoice_billing_period_order",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceItem",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("description", models.CharField(max_length=255)),
                (
                    "item_type",
                    models.CharField(
                        choices=[
                            ("tuition", "Tuition"),
                            ("admission", "Admission"),
                            ("exam", "Exam"),
                            ("other", "Other"),
                        ],
                        default="tuition",
                        max_length=16,
                    ),
                ),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("unit_price", models.BigIntegerField()),
                ("total", models.BigIntegerField()),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="items",
                        to="billing.invoice",
                    ),
                ),
                (
                    "subject",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoice_items",
                        to="school.subject",
                    ),
                ),
                (
                    "teacher",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="billed_items",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["invoice", "id"],
                "indexes": [
                    models.Index(fields=["teacher"], name="billing_item_teacher_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 1)),
                        name="chk_invoice_item_quantity_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("unit_price__gte", 0)),
                        name="chk_invoice_item_unit_price_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceAdjustment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("discount", "Discount"),
                            ("late_fee", "Late fee"),
                            ("credit_note", "Credit note"),
                            ("write_off", "Write-off"),
                        ],
                        max_length=16,
                    ),
                ),
                ("amount", models.BigIntegerField()),
                ("reason", models.CharField(max_length=255)),
                ("applied_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "applied_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="invoice_adjustments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="adjustments",
                        to="billing.invoice",
                    ),
                ),
            ],
            options={
                "ordering": ["applied_at", "id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount", 0), _negated=True),
                        name="chk_adjustment_amount_non_zero",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "receipt_number",
                    models.CharField(
                        help_text="System-generated receipt number (RCP-YYYYMM-NNNNNN)",
                        max_length=32,
                        unique=True,
                    ),
                ),
                ("amount", models.BigIntegerField()),
                (
                    "method",
                    models.CharField(
                        choices=[
                            ("cash", "Cash"),
                            ("bank_transfer", "Bank transfer"),
                            ("card", "Card"),
                            ("cheque", "Cheque"),
                        ],
                        max_length=16,
                    ),
                ),
                ("payment_date", models.DateField()),
                (
                    "transaction_reference",
                    models.CharField(blank=True, default="", max_length=64),
                ),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[("completed", "Completed"), ("refunded", "Refunded")],
                        default="completed",
                        max_length=16,
                    ),
                ),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("refund_reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "invoice",
                    models.ForeignKey(
                        blank=True,
                        help_text="Optional target invoice supplied by the cashier.",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="targeted_payments",
                        to="billing.invoice",
                    ),
                ),
                (
                    "received_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments_received",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "refunded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments_refunded",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="school.student",
                    ),
                ),
            ],
            options={
                "ordering": ["-payment_date", "-created_at"],
                "indexes": [
                    models.Index(
                        fields=["payment_date", "status"],
                        name="billing_pay_date_status_idx",
                    ),
                    models.Index(
                        fields=["student", "status"],
                        name="billing_pay_student_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="chk_payment_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentAllocation",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("amount", models.BigIntegerField()),
                (
                    "allocated_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("is_reversed", models.BooleanField(default=False)),
                ("reversed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="billing.invoice",
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="billing.payment",
                    ),
                ),
            ],
            options={
                "ordering": ["allocated_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["payment", "is_reversed"],
                        name="billing_alloc_payment_idx",
                    ),
                    models.Index(
                        fields=["invoice", "is_reversed"],
                        name="billing_alloc_invoice_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="chk_allocation_amount_positive",
                    ),
                ],
            },
        ),
    ]
