# billing/api/views/payments.py

"""
======================================================
PATH: billing/api/views/payments.py
======================================================
PAYMENT VIEWSET

Endpoints:
    GET  /api/billing/payments/               list (filters: student, method, status, date_from, date_to, q)
    POST /api/billing/payments/               record + allocate (receipt payload back)
    GET  /api/billing/payments/<id>/          receipt
    POST /api/billing/payments/<id>/refund/   full refund (allocations reversed)

Security:
- read:   billing.view
- record: billing.collect
- refund: billing.refund

Overpayment:
- strict deployments answer 409 OVERPAYMENT_REJECTED and persist nothing
- credit deployments answer 201 with unapplied_amount > 0
======================================================
"""

from __future__ import annotations

from django.db.models import BigIntegerField, Q, Sum
from django.db.models.functions import Coalesce
from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from billing.api.errors import ledger_error_response
from billing.api.filters import PaymentFilter
from billing.api.serializers import (
    PaymentCreateSerializer,
    PaymentReadSerializer,
    PaymentRefundCommandSerializer,
)
from billing.models import Payment
from billing.services.exceptions import LedgerError
from billing.services.payment_service import record_payment, refund_payment
from permissions.roles import (
    CAP_BILLING_COLLECT,
    CAP_BILLING_REFUND,
    CAP_BILLING_VIEW,
    HasCapability,
)

_ACTION_CAPABILITIES = {
    "create": CAP_BILLING_COLLECT,
    "refund": CAP_BILLING_REFUND,
}


class PaymentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = (
        Payment.objects.all()
        .select_related("student")
        .prefetch_related("allocations", "allocations__invoice")
        .annotate(
            active_allocated=Coalesce(
                Sum("allocations__amount", filter=Q(allocations__is_reversed=False)),
                0,
                output_field=BigIntegerField(),
            )
        )
        .order_by("-payment_date", "-created_at")
    )
    serializer_class = PaymentReadSerializer
    filterset_class = PaymentFilter
    permission_classes = [IsAuthenticated, HasCapability]

    required_capability = CAP_BILLING_VIEW

    def get_permissions(self):
        self.required_capability = _ACTION_CAPABILITIES.get(self.action, CAP_BILLING_VIEW)
        return [IsAuthenticated(), HasCapability()]

    def get_serializer_class(self):
        if self.action == "create":
            return PaymentCreateSerializer
        if self.action == "refund":
            return PaymentRefundCommandSerializer
        return PaymentReadSerializer

    def _receipt(self, payment, http_status=status.HTTP_200_OK):
        payment = self.get_queryset().get(pk=payment.pk)
        return Response(PaymentReadSerializer(payment).data, status=http_status)

    # --------------------------------------------------
    # RECORD PAYMENT
    # --------------------------------------------------

    @extend_schema(request=PaymentCreateSerializer, responses={201: PaymentReadSerializer})
    def create(self, request, *args, **kwargs):
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = record_payment(
                student_id=data["student_id"],
                amount=data["amount"],
                method=data["method"],
                invoice_id=data.get("invoice_id"),
                payment_date=data.get("payment_date"),
                transaction_reference=data.get("transaction_reference", ""),
                notes=data.get("notes", ""),
                received_by=request.user,
            )
        except LedgerError as exc:
            return ledger_error_response(exc)

        return self._receipt(result.payment, http_status=status.HTTP_201_CREATED)

    # --------------------------------------------------
    # REFUND (FULL)
    # --------------------------------------------------

    @extend_schema(request=PaymentRefundCommandSerializer, responses={200: PaymentReadSerializer})
    @action(detail=True, methods=["post"], url_path="refund")
    def refund(self, request, pk=None):
        payment = self.get_object()

        command = PaymentRefundCommandSerializer(data=request.data)
        command.is_valid(raise_exception=True)

        try:
            result = refund_payment(
                payment_id=payment.pk,
                refunded_by=request.user,
                reason=command.validated_data.get("reason", ""),
            )
        except LedgerError as exc:
            return ledger_error_response(exc)

        return self._receipt(result.payment)
