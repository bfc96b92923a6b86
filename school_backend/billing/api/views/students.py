# billing/api/views/students.py

"""
STUDENT ACCOUNT ENDPOINTS

    GET  /api/billing/students/<id>/statement/     summary + running-balance entries
    POST /api/billing/students/<id>/apply-credit/  spend unapplied credit on open invoices
"""

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from billing.api.errors import ledger_error_response
from billing.api.serializers import MoneyField, StatementSerializer
from billing.services.exceptions import LedgerError
from billing.services.payment_service import apply_student_credit, student_credit_balance
from billing.services.statement_service import student_statement
from permissions.roles import CAP_BILLING_COLLECT, CAP_BILLING_VIEW, HasCapability


class StudentStatementView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_BILLING_VIEW

    @extend_schema(responses={200: StatementSerializer})
    def get(self, request, student_id):
        try:
            statement = student_statement(student_id=student_id)
        except LedgerError as exc:
            return ledger_error_response(exc)
        return Response(StatementSerializer(statement).data)


class StudentApplyCreditView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_BILLING_COLLECT

    @extend_schema(
        request=None,
        responses={
            200: {
                "type": "object",
                "properties": {
                    "applied": {"type": "string"},
                    "allocations": {"type": "integer"},
                    "credit_balance": {"type": "string"},
                },
            }
        },
    )
    def post(self, request, student_id):
        try:
            created = apply_student_credit(student_id=student_id)
        except LedgerError as exc:
            return ledger_error_response(exc)

        money = MoneyField()
        return Response(
            {
                "applied": money.to_representation(sum(a.amount for a in created)),
                "allocations": len(created),
                "credit_balance": money.to_representation(
                    student_credit_balance(student_id=student_id)
                ),
            }
        )
