# billing/api/serializers/fields.py

from rest_framework import serializers

from billing.services.exceptions import InvalidAmount
from billing.services.money import format_minor, to_minor


class MoneyField(serializers.Field):
    """
    Decimal display string at the API edge, integer minor units inside.

        "1500.50" <-> 150050
    """

    default_error_messages = {
        "negative": "Amount cannot be negative.",
    }

    def __init__(self, *, allow_negative: bool = False, **kwargs):
        self.allow_negative = allow_negative
        super().__init__(**kwargs)

    def to_representation(self, value):
        return format_minor(value)

    def to_internal_value(self, data):
        try:
            minor = to_minor(data)
        except InvalidAmount as exc:
            raise serializers.ValidationError(str(exc)) from exc

        if minor < 0 and not self.allow_negative:
            self.fail("negative")
        return minor
