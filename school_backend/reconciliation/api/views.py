# reconciliation/api/views.py

"""
======================================================
PATH: reconciliation/api/views.py
======================================================
DAILY CLOSE ENDPOINTS

    GET  /api/reconciliation/daily-close/               list (?date_from=&date_to=)
    POST /api/reconciliation/daily-close/               create / update draft
    POST /api/reconciliation/daily-close/lock/          lock (one-way)
    GET  /api/reconciliation/daily-close/<YYYY-MM-DD>/  preview (expected vs actual)

Security:
- list / draft / preview: daily_close.prepare
- lock:                   daily_close.lock
======================================================
"""

from __future__ import annotations

from django.utils.dateparse import parse_date
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from billing.api.errors import error_response, ledger_error_response
from billing.services.exceptions import LedgerError
from permissions.roles import CAP_DAILY_CLOSE_LOCK, CAP_DAILY_CLOSE_PREPARE, HasCapability
from reconciliation.api.serializers import (
    DailyCloseListQuerySerializer,
    DailyCloseLockSerializer,
    DailyClosePreviewSerializer,
    DailyCloseReadSerializer,
    DailyCloseSaveSerializer,
)
from reconciliation.services.daily_close_service import (
    list_daily_closes,
    lock_daily_close,
    preview_daily_close,
    save_daily_close,
)


class DailyCloseListCreateView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_DAILY_CLOSE_PREPARE

    @extend_schema(
        parameters=[
            OpenApiParameter("date_from", str, required=False),
            OpenApiParameter("date_to", str, required=False),
        ],
        responses={200: DailyCloseReadSerializer(many=True)},
    )
    def get(self, request):
        query = DailyCloseListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        try:
            records = list_daily_closes(**query.validated_data)
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(DailyCloseReadSerializer(records, many=True).data)

    @extend_schema(request=DailyCloseSaveSerializer, responses={200: DailyCloseReadSerializer})
    def post(self, request):
        serializer = DailyCloseSaveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            record = save_daily_close(user=request.user, **serializer.validated_data)
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(DailyCloseReadSerializer(record).data, status=status.HTTP_200_OK)


class DailyCloseLockView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_DAILY_CLOSE_LOCK

    @extend_schema(request=DailyCloseLockSerializer, responses={200: DailyCloseReadSerializer})
    def post(self, request):
        serializer = DailyCloseLockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            record = lock_daily_close(user=request.user, **serializer.validated_data)
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(DailyCloseReadSerializer(record).data)


class DailyClosePreviewView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_DAILY_CLOSE_PREPARE

    @extend_schema(responses={200: DailyClosePreviewSerializer})
    def get(self, request, close_date):
        parsed = parse_date(close_date) if close_date else None
        if parsed is None:
            return error_response(
                code="INVALID_DATE",
                message="close_date must be YYYY-MM-DD",
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            preview = preview_daily_close(close_date=parsed)
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(DailyClosePreviewSerializer(preview).data)
