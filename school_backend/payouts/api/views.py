# payouts/api/views.py

"""
======================================================
PATH: payouts/api/views.py
======================================================
PAYOUT ENDPOINTS

    GET  /api/payouts/teachers/<id>/payout/?period_start=&period_end=
    GET  /api/payouts/rules/?teacher=<id>     rule history, newest first
    POST /api/payouts/rules/                  new rule version

Security:
- payout:  payouts.view (any teacher) or payouts.view_own (own id only)
- history: payouts.view
- upsert:  payouts.manage
======================================================
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from billing.api.errors import error_response, ledger_error_response
from billing.services.exceptions import LedgerError
from payouts.api.serializers import (
    PayoutQuerySerializer,
    PayoutResultSerializer,
    PayoutRuleReadSerializer,
    PayoutRuleWriteSerializer,
    RuleHistoryQuerySerializer,
)
from payouts.services.payout_service import compute_payout
from payouts.services.rules import rule_history, upsert_payout_rule
from permissions.roles import (
    CAP_PAYOUTS_MANAGE,
    CAP_PAYOUTS_VIEW,
    CAP_PAYOUTS_VIEW_OWN,
    HasAnyCapability,
    HasCapability,
    user_has_capability,
)


class TeacherPayoutView(APIView):
    permission_classes = [IsAuthenticated, HasAnyCapability]
    required_any_capabilities = {CAP_PAYOUTS_VIEW, CAP_PAYOUTS_VIEW_OWN}

    @extend_schema(
        parameters=[
            OpenApiParameter("period_start", str, required=True),
            OpenApiParameter("period_end", str, required=True),
        ],
        responses={200: PayoutResultSerializer},
    )
    def get(self, request, teacher_id):
        if not user_has_capability(request.user, CAP_PAYOUTS_VIEW) and request.user.pk != teacher_id:
            return error_response(
                code="FORBIDDEN",
                message="You can only view your own payouts.",
                http_status=status.HTTP_403_FORBIDDEN,
            )

        query = PayoutQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        try:
            result = compute_payout(teacher_id=teacher_id, **query.validated_data)
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(PayoutResultSerializer(result).data)


class PayoutRuleView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]

    def get_permissions(self):
        self.required_capability = (
            CAP_PAYOUTS_MANAGE if self.request.method == "POST" else CAP_PAYOUTS_VIEW
        )
        return [IsAuthenticated(), HasCapability()]

    @extend_schema(
        parameters=[OpenApiParameter("teacher", str, required=True)],
        responses={200: PayoutRuleReadSerializer(many=True)},
    )
    def get(self, request):
        query = RuleHistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        try:
            rules = rule_history(teacher_id=query.validated_data["teacher"])
            data = PayoutRuleReadSerializer(rules, many=True).data
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(data)

    @extend_schema(request=PayoutRuleWriteSerializer, responses={201: PayoutRuleReadSerializer})
    def post(self, request):
        serializer = PayoutRuleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            rule = upsert_payout_rule(created_by=request.user, **serializer.validated_data)
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(PayoutRuleReadSerializer(rule).data, status=status.HTTP_201_CREATED)
