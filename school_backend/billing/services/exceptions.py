# billing/services/exceptions.py

"""
LEDGER SERVICE ERRORS

Centralized domain errors for billing, reconciliation and payout services.

Families (each maps to one HTTP status at the API edge):
- LedgerValidationError   -> 400  malformed input, never retried
- LedgerNotFound          -> 404  unknown student / invoice / payment / teacher
- LedgerConflictError     -> 409  state conflict, caller must correct input
- LedgerConcurrencyError  -> 409  lost race, caller may re-fetch and resubmit
- PersistenceError        -> 500  storage failure (transaction rolled back)
- LedgerIntegrityError    -> 500  post-write invariant check failed (rolled back)

The engine never retries on its own.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base exception for all ledger service failures."""

    code = "LEDGER_ERROR"
    http_status = 500
    retryable = False

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.context = context


# ============================================================
# VALIDATION (400)
# ============================================================


class LedgerValidationError(LedgerError):
    """Malformed ledger input."""

    code = "VALIDATION_ERROR"
    http_status = 400


class InvalidAmount(LedgerValidationError):
    """Amount must be a positive number of minor units."""

    code = "INVALID_AMOUNT"


class InvalidLineItems(LedgerValidationError):
    """Invoice line items are missing or malformed."""

    code = "INVALID_LINE_ITEMS"


class InvalidAdjustment(LedgerValidationError):
    """Adjustment kind / sign combination is not allowed."""

    code = "INVALID_ADJUSTMENT"


class InvalidDailyClose(LedgerValidationError):
    """Daily close input is malformed."""

    code = "INVALID_DAILY_CLOSE"


class InvalidPayoutRule(LedgerValidationError):
    """Payout rule parameters are malformed."""

    code = "INVALID_PAYOUT_RULE"


class InvalidPeriod(LedgerValidationError):
    """Reporting period is malformed."""

    code = "INVALID_PERIOD"


# ============================================================
# NOT FOUND (404)
# ============================================================


class LedgerNotFound(LedgerError):
    """Referenced ledger record does not exist."""

    code = "NOT_FOUND"
    http_status = 404


class StudentNotFound(LedgerNotFound):
    """Student not found."""

    code = "STUDENT_NOT_FOUND"


class InvoiceNotFound(LedgerNotFound):
    """Invoice not found."""

    code = "INVOICE_NOT_FOUND"


class PaymentNotFound(LedgerNotFound):
    """Payment not found."""

    code = "PAYMENT_NOT_FOUND"


class TeacherNotFound(LedgerNotFound):
    """Teacher not found."""

    code = "TEACHER_NOT_FOUND"


class NoPayoutRule(LedgerNotFound):
    """No payout rule covers the requested period."""

    code = "NO_PAYOUT_RULE"


# ============================================================
# CONFLICT (409)
# ============================================================


class LedgerConflictError(LedgerError):
    """Request conflicts with the current ledger state."""

    code = "CONFLICT"
    http_status = 409


class AlreadyFinalized(LedgerConflictError):
    """Daily close is locked and can no longer change."""

    code = "ALREADY_FINALIZED"


class AlreadyRefunded(LedgerConflictError):
    """Payment has already been refunded."""

    code = "ALREADY_REFUNDED"


class FutureDate(LedgerConflictError):
    """Date lies in the future."""

    code = "FUTURE_DATE"


class AmbiguousPayoutRule(LedgerConflictError):
    """More than one payout rule covers the same date."""

    code = "AMBIGUOUS_PAYOUT_RULE"


class PayoutRuleNotLater(LedgerConflictError):
    """A new payout rule must start after the currently active one."""

    code = "PAYOUT_RULE_NOT_LATER"


class DuplicateReceipt(LedgerConflictError):
    """Receipt number collision."""

    code = "DUPLICATE_RECEIPT"


class OverpaymentRejected(LedgerConflictError):
    """Payment exceeds what the student owes (strict overpayment policy)."""

    code = "OVERPAYMENT_REJECTED"


class OverAdjustment(LedgerConflictError):
    """Adjustment would push the invoice total below what is already paid."""

    code = "OVER_ADJUSTMENT"


class InvoiceNotOpen(LedgerConflictError):
    """Invoice cannot accept this operation in its current status."""

    code = "INVOICE_NOT_OPEN"


class ChainTooLong(LedgerConflictError):
    """Recurring invoice chain exceeds the configured limit (or loops)."""

    code = "CHAIN_TOO_LONG"


class RecurringAlreadyGenerated(LedgerConflictError):
    """The next invoice of this recurring chain already exists."""

    code = "RECURRING_ALREADY_GENERATED"


# ============================================================
# CONCURRENCY (409, retryable)
# ============================================================


class LedgerConcurrencyError(LedgerError):
    """Concurrent update lost the race; re-fetch and resubmit."""

    code = "CONCURRENT_UPDATE"
    http_status = 409
    retryable = True


class StaleInvoice(LedgerConcurrencyError):
    """Invoice balance changed underneath this operation."""

    code = "STALE_INVOICE"


class DailyCloseRace(LedgerConcurrencyError):
    """Another request created or locked this daily close first."""

    code = "DAILY_CLOSE_RACE"


# ============================================================
# INTERNAL (500)
# ============================================================


class PersistenceError(LedgerError):
    """Ledger storage failure; no partial writes were kept."""

    code = "PERSISTENCE_ERROR"
    http_status = 500


class LedgerIntegrityError(LedgerError):
    """Ledger invariant violated; the transaction was rolled back."""

    code = "LEDGER_INTEGRITY_ERROR"
    http_status = 500
