# billing/api/serializers/statement.py

from rest_framework import serializers

from billing.api.serializers.fields import MoneyField


class StatementEntrySerializer(serializers.Serializer):
    entry_date = serializers.DateField()
    entry_type = serializers.CharField()
    reference = serializers.CharField()
    description = serializers.CharField()
    debit = MoneyField()
    credit = MoneyField()
    balance = MoneyField(allow_negative=True)


class StatementSerializer(serializers.Serializer):
    student_id = serializers.UUIDField(source="student.id")
    student_name = serializers.CharField(source="student.full_name")
    roll_number = serializers.CharField(source="student.roll_number")

    total_invoiced = MoneyField()
    total_paid = MoneyField()
    total_outstanding = MoneyField()
    credit_balance = MoneyField()
    closing_balance = MoneyField(allow_negative=True)

    entries = StatementEntrySerializer(many=True)
