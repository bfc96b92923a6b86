# billing/api/serializers/invoice.py

"""
INVOICE SERIALIZERS

Read:
- InvoiceReadSerializer (with items + adjustments)
- InvoiceSummarySerializer (list rows, chain members)

Command (no DB writes here, services do that):
- InvoiceCreateSerializer
- InvoiceAdjustmentCommandSerializer
"""

from rest_framework import serializers

from billing.api.serializers.fields import MoneyField
from billing.models import Invoice, InvoiceAdjustment, InvoiceItem


# ==========================================================
# READ
# ==========================================================


class InvoiceItemReadSerializer(serializers.ModelSerializer):
    unit_price = MoneyField(read_only=True)
    total = MoneyField(read_only=True)

    class Meta:
        model = InvoiceItem
        fields = [
            "id",
            "description",
            "item_type",
            "quantity",
            "unit_price",
            "total",
            "subject",
            "teacher",
        ]
        read_only_fields = fields


class InvoiceAdjustmentReadSerializer(serializers.ModelSerializer):
    amount = MoneyField(read_only=True)
    amount_minor = serializers.IntegerField(source="amount", read_only=True)

    class Meta:
        model = InvoiceAdjustment
        fields = [
            "id",
            "kind",
            "amount",
            "amount_minor",
            "reason",
            "applied_by",
            "applied_at",
        ]
        read_only_fields = fields


class InvoiceSummarySerializer(serializers.ModelSerializer):
    total = MoneyField(read_only=True)
    amount_paid = MoneyField(read_only=True)
    balance_due = MoneyField(read_only=True)

    total_minor = serializers.IntegerField(source="total", read_only=True)
    amount_paid_minor = serializers.IntegerField(source="amount_paid", read_only=True)
    balance_due_minor = serializers.IntegerField(source="balance_due", read_only=True)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "student",
            "issue_date",
            "due_date",
            "status",
            "kind",
            "billing_period_start",
            "billing_period_end",
            "parent_invoice",
            "total",
            "amount_paid",
            "balance_due",
            "total_minor",
            "amount_paid_minor",
            "balance_due_minor",
        ]
        read_only_fields = fields


class InvoiceReadSerializer(InvoiceSummarySerializer):
    student_name = serializers.CharField(source="student.full_name", read_only=True)

    subtotal = MoneyField(read_only=True)
    discount = MoneyField(read_only=True)
    late_fee = MoneyField(read_only=True)
    adjustments_total = MoneyField(read_only=True)

    items = InvoiceItemReadSerializer(many=True, read_only=True)
    adjustments = InvoiceAdjustmentReadSerializer(many=True, read_only=True)

    class Meta(InvoiceSummarySerializer.Meta):
        fields = InvoiceSummarySerializer.Meta.fields + [
            "student_name",
            "subtotal",
            "discount",
            "late_fee",
            "adjustments_total",
            "notes",
            "version",
            "items",
            "adjustments",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


# ==========================================================
# COMMANDS
# ==========================================================


class InvoiceLineInputSerializer(serializers.Serializer):
    description = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")
    item_type = serializers.ChoiceField(
        choices=InvoiceItem.TYPE_CHOICES,
        required=False,
        default=InvoiceItem.TYPE_TUITION,
    )
    quantity = serializers.IntegerField(min_value=1, required=False, default=1)
    unit_price = MoneyField(
        required=False,
        help_text="Display units. Defaults to the subject's monthly fee.",
    )
    subject_id = serializers.UUIDField(required=False, allow_null=True)
    teacher_id = serializers.UUIDField(required=False, allow_null=True)


class InvoiceCreateSerializer(serializers.Serializer):
    student_id = serializers.UUIDField()
    line_items = InvoiceLineInputSerializer(many=True, allow_empty=False)

    issue_date = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False)
    billing_period_start = serializers.DateField(required=False, allow_null=True)
    billing_period_end = serializers.DateField(required=False, allow_null=True)

    discount = MoneyField(required=False, default=0)
    kind = serializers.ChoiceField(
        choices=Invoice.KIND_CHOICES,
        required=False,
        default=Invoice.KIND_ONE_OFF,
    )
    parent_invoice_id = serializers.UUIDField(required=False, allow_null=True)
    draft = serializers.BooleanField(required=False, default=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class InvoiceAdjustmentCommandSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=InvoiceAdjustment.KIND_CHOICES)
    amount = MoneyField(
        allow_negative=True,
        help_text="Signed display amount: late_fee > 0, discount / credit_note / write_off < 0.",
    )
    reason = serializers.CharField(max_length=255)
