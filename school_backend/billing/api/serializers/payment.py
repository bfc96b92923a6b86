# billing/api/serializers/payment.py

from rest_framework import serializers

from billing.api.serializers.fields import MoneyField
from billing.models import Payment, PaymentAllocation
from billing.services.allocation import unapplied_amount


class PaymentAllocationReadSerializer(serializers.ModelSerializer):
    amount = MoneyField(read_only=True)
    amount_minor = serializers.IntegerField(source="amount", read_only=True)
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True)

    class Meta:
        model = PaymentAllocation
        fields = [
            "id",
            "invoice",
            "invoice_number",
            "amount",
            "amount_minor",
            "allocated_at",
            "is_reversed",
            "reversed_at",
        ]
        read_only_fields = fields


class PaymentReadSerializer(serializers.ModelSerializer):
    """
    Receipt payload: payment + where its money went.
    """

    amount = MoneyField(read_only=True)
    amount_minor = serializers.IntegerField(source="amount", read_only=True)
    unapplied_amount = serializers.SerializerMethodField()
    allocations = PaymentAllocationReadSerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "receipt_number",
            "student",
            "invoice",
            "amount",
            "amount_minor",
            "unapplied_amount",
            "method",
            "payment_date",
            "transaction_reference",
            "notes",
            "status",
            "received_by",
            "refunded_at",
            "refunded_by",
            "refund_reason",
            "allocations",
            "created_at",
        ]
        read_only_fields = fields

    def get_unapplied_amount(self, obj) -> str:
        # list/detail querysets annotate active_allocated
        allocated = getattr(obj, "active_allocated", None)
        if allocated is None:
            return MoneyField().to_representation(unapplied_amount(obj))
        return MoneyField().to_representation(obj.amount - allocated)


class PaymentCreateSerializer(serializers.Serializer):
    student_id = serializers.UUIDField()
    amount = MoneyField()
    method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES)
    invoice_id = serializers.UUIDField(
        required=False,
        allow_null=True,
        help_text="Target invoice. Omit to allocate FIFO across open invoices.",
    )
    payment_date = serializers.DateField(required=False)
    transaction_reference = serializers.CharField(required=False, allow_blank=True, max_length=64, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentRefundCommandSerializer(serializers.Serializer):
    """
    Command serializer for refund requests. Validates input only.
    """

    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")
