# billing/api/views/invoices.py

"""
======================================================
PATH: billing/api/views/invoices.py
======================================================
INVOICE VIEWSET

Endpoints:
    GET  /api/billing/invoices/                      list (filters: student, status, kind, due_before, due_after, q)
    POST /api/billing/invoices/                      create (numbered, items -> totals)
    GET  /api/billing/invoices/<id>/                 detail (items + adjustments)
    POST /api/billing/invoices/<id>/issue/           draft -> sent/overdue
    POST /api/billing/invoices/<id>/adjustments/     discount / late fee / credit note / write-off
    GET  /api/billing/invoices/<id>/chain/           recurring chain, oldest first
    POST /api/billing/invoices/<id>/next-recurring/  generate the successor invoice

Security:
- read:           billing.view
- create / issue: billing.invoice
- adjustments:    billing.adjust
======================================================
"""

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from billing.api.errors import ledger_error_response
from billing.api.filters import InvoiceFilter
from billing.api.serializers import (
    InvoiceAdjustmentCommandSerializer,
    InvoiceCreateSerializer,
    InvoiceReadSerializer,
    InvoiceSummarySerializer,
)
from billing.models import Invoice
from billing.services.exceptions import LedgerError
from billing.services.invoice_service import apply_adjustment, create_invoice, issue_invoice
from billing.services.recurring_service import generate_next_recurring_invoice, invoice_chain
from permissions.roles import (
    CAP_BILLING_ADJUST,
    CAP_BILLING_INVOICE,
    CAP_BILLING_VIEW,
    HasCapability,
)

_ACTION_CAPABILITIES = {
    "create": CAP_BILLING_INVOICE,
    "issue": CAP_BILLING_INVOICE,
    "next_recurring": CAP_BILLING_INVOICE,
    "adjustments": CAP_BILLING_ADJUST,
}


class InvoiceViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = (
        Invoice.objects.all()
        .select_related("student")
        .prefetch_related("items", "adjustments")
        .order_by("-issue_date", "-created_at")
    )
    serializer_class = InvoiceReadSerializer
    filterset_class = InvoiceFilter
    permission_classes = [IsAuthenticated, HasCapability]

    required_capability = CAP_BILLING_VIEW

    def get_permissions(self):
        self.required_capability = _ACTION_CAPABILITIES.get(self.action, CAP_BILLING_VIEW)
        return [IsAuthenticated(), HasCapability()]

    def get_serializer_class(self):
        if self.action == "list":
            return InvoiceSummarySerializer
        if self.action == "create":
            return InvoiceCreateSerializer
        if self.action == "adjustments":
            return InvoiceAdjustmentCommandSerializer
        return InvoiceReadSerializer

    def _detail(self, invoice, http_status=status.HTTP_200_OK):
        invoice = self.get_queryset().get(pk=invoice.pk)
        return Response(InvoiceReadSerializer(invoice).data, status=http_status)

    # --------------------------------------------------
    # CREATE
    # --------------------------------------------------

    @extend_schema(request=InvoiceCreateSerializer, responses={201: InvoiceReadSerializer})
    def create(self, request, *args, **kwargs):
        serializer = InvoiceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        line_items = []
        for line in data["line_items"]:
            line_items.append(
                {
                    "description": line.get("description", ""),
                    "item_type": line.get("item_type"),
                    "quantity": line.get("quantity", 1),
                    "unit_price": line.get("unit_price"),
                    "subject_id": line.get("subject_id"),
                    "teacher_id": line.get("teacher_id"),
                }
            )

        try:
            invoice = create_invoice(
                student_id=data["student_id"],
                line_items=line_items,
                issue_date=data.get("issue_date"),
                due_date=data.get("due_date"),
                billing_period_start=data.get("billing_period_start"),
                billing_period_end=data.get("billing_period_end"),
                discount=data.get("discount", 0),
                kind=data.get("kind", Invoice.KIND_ONE_OFF),
                parent_invoice_id=data.get("parent_invoice_id"),
                draft=data.get("draft", False),
                notes=data.get("notes", ""),
                created_by=request.user,
            )
        except LedgerError as exc:
            return ledger_error_response(exc)

        return self._detail(invoice, http_status=status.HTTP_201_CREATED)

    # --------------------------------------------------
    # ISSUE
    # --------------------------------------------------

    @extend_schema(request=None, responses={200: InvoiceReadSerializer})
    @action(detail=True, methods=["post"], url_path="issue")
    def issue(self, request, pk=None):
        invoice = self.get_object()
        try:
            invoice = issue_invoice(invoice_id=invoice.pk)
        except LedgerError as exc:
            return ledger_error_response(exc)
        return self._detail(invoice)

    # --------------------------------------------------
    # ADJUSTMENTS
    # --------------------------------------------------

    @extend_schema(request=InvoiceAdjustmentCommandSerializer, responses={201: InvoiceReadSerializer})
    @action(detail=True, methods=["post"], url_path="adjustments")
    def adjustments(self, request, pk=None):
        invoice = self.get_object()

        serializer = InvoiceAdjustmentCommandSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            invoice = apply_adjustment(
                invoice_id=invoice.pk,
                kind=serializer.validated_data["kind"],
                amount=serializer.validated_data["amount"],
                reason=serializer.validated_data["reason"],
                applied_by=request.user,
            )
        except LedgerError as exc:
            return ledger_error_response(exc)
        return self._detail(invoice, http_status=status.HTTP_201_CREATED)

    # --------------------------------------------------
    # RECURRING CHAIN
    # --------------------------------------------------

    @extend_schema(responses={200: InvoiceSummarySerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="chain")
    def chain(self, request, pk=None):
        invoice = self.get_object()
        try:
            chain = invoice_chain(invoice_id=invoice.pk)
        except LedgerError as exc:
            return ledger_error_response(exc)
        return Response(InvoiceSummarySerializer(chain, many=True).data)

    @extend_schema(request=None, responses={201: InvoiceReadSerializer})
    @action(detail=True, methods=["post"], url_path="next-recurring")
    def next_recurring(self, request, pk=None):
        invoice = self.get_object()
        try:
            successor = generate_next_recurring_invoice(
                invoice_id=invoice.pk,
                created_by=request.user,
            )
        except LedgerError as exc:
            return ledger_error_response(exc)
        return self._detail(successor, http_status=status.HTTP_201_CREATED)
