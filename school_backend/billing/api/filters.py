# billing/api/filters.py

"""
LIST FILTERS (django-filter)

Invoices:  ?student=&status=&kind=&due_before=&due_after=&q=
Payments:  ?student=&method=&status=&date_from=&date_to=&q=
"""

import django_filters
from django.db.models import Q

from billing.models import Invoice, Payment


class InvoiceFilter(django_filters.FilterSet):
    student = django_filters.UUIDFilter(field_name="student_id")
    status = django_filters.ChoiceFilter(choices=Invoice.STATUS_CHOICES)
    kind = django_filters.ChoiceFilter(choices=Invoice.KIND_CHOICES)
    due_before = django_filters.DateFilter(field_name="due_date", lookup_expr="lte")
    due_after = django_filters.DateFilter(field_name="due_date", lookup_expr="gte")
    q = django_filters.CharFilter(method="filter_q")

    class Meta:
        model = Invoice
        fields = ["student", "status", "kind"]

    def filter_q(self, queryset, name, value):
        value = (value or "").strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(invoice_number__icontains=value)
            | Q(student__roll_number__icontains=value)
            | Q(student__first_name__icontains=value)
            | Q(student__last_name__icontains=value)
        )


class PaymentFilter(django_filters.FilterSet):
    student = django_filters.UUIDFilter(field_name="student_id")
    method = django_filters.ChoiceFilter(choices=Payment.METHOD_CHOICES)
    status = django_filters.ChoiceFilter(choices=Payment.STATUS_CHOICES)
    date_from = django_filters.DateFilter(field_name="payment_date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="payment_date", lookup_expr="lte")
    q = django_filters.CharFilter(field_name="receipt_number", lookup_expr="icontains")

    class Meta:
        model = Payment
        fields = ["student", "method", "status"]
