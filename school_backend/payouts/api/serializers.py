# payouts/api/serializers.py

from rest_framework import serializers

from billing.api.serializers import MoneyField
from payouts.models import PayoutRule


class PayoutRuleReadSerializer(serializers.ModelSerializer):
    teacher_email = serializers.EmailField(source="teacher.email", read_only=True)
    tier1_threshold = MoneyField(read_only=True, allow_null=True)
    description = serializers.CharField(source="describe", read_only=True)

    class Meta:
        model = PayoutRule
        fields = [
            "id",
            "teacher",
            "teacher_email",
            "is_fixed",
            "fixed_percentage",
            "tier1_percentage",
            "tier1_threshold",
            "tier2_percentage",
            "effective_from",
            "effective_to",
            "is_active",
            "description",
            "created_at",
        ]
        read_only_fields = fields


class PayoutRuleWriteSerializer(serializers.Serializer):
    """
    Either fixed_percentage, or all three tier fields.
    Shape errors beyond that are reported by the service.
    """

    teacher_id = serializers.UUIDField()
    effective_from = serializers.DateField()
    fixed_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)
    tier1_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)
    tier1_threshold = MoneyField(required=False)
    tier2_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)


class PayoutQuerySerializer(serializers.Serializer):
    period_start = serializers.DateField()
    period_end = serializers.DateField()


class PayoutResultSerializer(serializers.Serializer):
    teacher_id = serializers.UUIDField()
    period_start = serializers.DateField()
    period_end = serializers.DateField()
    revenue_base = MoneyField()
    revenue_base_minor = serializers.IntegerField(source="revenue_base")
    payout = MoneyField()
    payout_minor = serializers.IntegerField(source="payout")
    tier1_base = MoneyField()
    tier2_base = MoneyField()
    rule_applied = PayoutRuleReadSerializer()
    warnings = serializers.ListField(child=serializers.DictField())


class RuleHistoryQuerySerializer(serializers.Serializer):
    teacher = serializers.UUIDField()
