# billing/api/errors.py

"""
API ERROR NORMALIZATION

Every ledger failure leaves the API in one shape:

    {"error": {"code": "...", "message": "...", "retryable": false, "details": {...}}}

Status comes from the exception family (400 / 404 / 409 / 500).
Shared by the billing, reconciliation and payouts APIs.
"""

from __future__ import annotations

import logging

from rest_framework.response import Response

from billing.services.exceptions import LedgerError

logger = logging.getLogger("billing")


def error_response(*, code: str, message: str, http_status: int, retryable: bool = False, details=None):
    """
    Canonical API error response.
    """
    body = {"code": code, "message": message, "retryable": retryable}
    if details:
        body["details"] = details
    return Response({"error": body}, status=http_status)


def ledger_error_response(exc: LedgerError):
    if exc.http_status >= 500:
        logger.error(
            "Ledger operation failed",
            extra={"code": exc.code, "error": str(exc)},
        )

    return error_response(
        code=exc.code,
        message=str(exc),
        http_status=exc.http_status,
        retryable=exc.retryable,
        details={k: v for k, v in exc.context.items() if v is not None} or None,
    )
