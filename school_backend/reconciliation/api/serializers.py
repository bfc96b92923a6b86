# reconciliation/api/serializers.py

from rest_framework import serializers

from billing.api.serializers import MoneyField
from reconciliation.models import DailyClose


class DailyCloseReadSerializer(serializers.ModelSerializer):
    expected_cash = MoneyField(read_only=True)
    expected_bank = MoneyField(read_only=True)
    expected_total = MoneyField(read_only=True)
    actual_cash = MoneyField(read_only=True)
    actual_bank = MoneyField(read_only=True)
    actual_total = MoneyField(read_only=True)
    variance = MoneyField(read_only=True, allow_negative=True)
    variance_minor = serializers.IntegerField(source="variance", read_only=True)
    status = serializers.SerializerMethodField()
    prepared_by = serializers.CharField(source="prepared_by.email", read_only=True, default=None)
    closed_by = serializers.CharField(source="closed_by.email", read_only=True, default=None)

    class Meta:
        model = DailyClose
        fields = [
            "id",
            "close_date",
            "status",
            "expected_cash",
            "expected_bank",
            "expected_total",
            "actual_cash",
            "actual_bank",
            "actual_total",
            "variance",
            "variance_minor",
            "is_locked",
            "notes",
            "prepared_by",
            "closed_by",
            "closed_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_status(self, obj) -> str:
        return "locked" if obj.is_locked else "draft"


class DailyClosePreviewSerializer(serializers.Serializer):
    close_date = serializers.DateField()
    status = serializers.CharField()
    expected_cash = MoneyField()
    expected_bank = MoneyField()
    expected_total = MoneyField()
    actual_cash = MoneyField(allow_null=True)
    actual_bank = MoneyField(allow_null=True)
    variance = MoneyField(allow_negative=True, allow_null=True)


class DailyCloseSaveSerializer(serializers.Serializer):
    close_date = serializers.DateField()
    actual_cash = MoneyField()
    actual_bank = MoneyField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class DailyCloseLockSerializer(serializers.Serializer):
    close_date = serializers.DateField()
    actual_cash = MoneyField(required=False)
    actual_bank = MoneyField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class DailyCloseListQuerySerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
